"""Shared fixtures for the bill extraction tests."""

import fitz
import pytest

from config import ConfigurationManager


EN_BILL_TEXT = """Power Utilities Inc.
123 Main Street
Electricity Bill
Account Number: ACCT12345
Statement Date: 05/10/2023
Current Charges: $124.56
Due Date: 06/01/2023
Thank you for your payment."""

HU_BILL_TEXT = """Áramszolgáltató Zrt.
Villamos energia számla
Ügyfélszám: 123456789
Számla sorszáma: SZ-2023/001234
Számla kelte: 2023.05.15.
Fizetési határidő: 2023.06.01.
Fizetendő összeg: 45.678 Ft
Köszönjük, hogy időben fizet!"""

HU_TELECOM_TEXT = """Telekom havi számla
Fizetendő: 8 990 Ft"""

NON_BILL_TEXT = "Hi team, the meeting moved to Thursday afternoon. See you there!"


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from the bundled settings.yaml."""
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


@pytest.fixture
def en_bill_text():
    return EN_BILL_TEXT


@pytest.fixture
def hu_bill_text():
    return HU_BILL_TEXT


@pytest.fixture
def hu_telecom_text():
    return HU_TELECOM_TEXT


@pytest.fixture
def non_bill_text():
    return NON_BILL_TEXT


@pytest.fixture
def make_pdf():
    """
    Build a PDF with PyMuPDF. Each argument is the list of lines of one page.
    """
    def _make(*pages):
        doc = fitz.open()
        for lines in pages:
            page = doc.new_page()
            for index, line in enumerate(lines):
                page.insert_text((72, 72 + index * 20), line, fontsize=11)
        data = doc.tobytes()
        doc.close()
        return data
    return _make
