"""
Hebrew label helpers: script detection and English field-name generation.
"""
import re
from typing import Dict

HEBREW_PATTERN = re.compile(r'[\u0590-\u05FF]')

# Hebrew label fragments -> English field names (longer phrases first)
HEBREW_FIELD_NAMES: Dict[str, str] = {
    'שם מלא': 'full_name',
    'שם פרטי': 'first_name',
    'שם משפחה': 'last_name',
    'שם הלקוח': 'customer_name',
    'שם הסוכן': 'agent_name',
    'כתובת העסק': 'business_address',
    'איש קשר': 'contact_person',
    'ת.ז.': 'id_number',
    'ת.ז': 'id_number',
    'תאריך': 'date',
    'חתימה': 'signature',
    'כתובת': 'address',
    'עיר': 'city',
    'מיקוד': 'zip_code',
    'רחוב': 'street',
    "רח'": 'street',
    'טלפון': 'phone',
    'נייד': 'mobile',
    'פקס': 'fax',
    'הערות': 'notes',
    'חשבון': 'account',
    'בנק': 'bank',
    'סניף': 'branch',
    'דוא"ל': 'email',
    'E-mail': 'email',
    "מס'": 'number',
    'מספר': 'number',
    'פרטי': 'first_name',
    'משפחה': 'last_name',
    'שם': 'name',
}


def is_hebrew_text(text: str) -> bool:
    """True if the text contains any Hebrew character."""
    return bool(text and HEBREW_PATTERN.search(text))


def generate_field_name(label: str, index: int) -> str:
    """
    Derive an English field name from a Hebrew label.

    Falls back to `field_{index + 1}` when no known phrase appears.
    """
    clean = (label or '').strip().rstrip(': \t')
    for hebrew, english in HEBREW_FIELD_NAMES.items():
        if hebrew in clean:
            return english
    return f"field_{index + 1}"
