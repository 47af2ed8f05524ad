"""
Root test configuration.

Test organization:
- unit/        Fast, isolated, in-memory repository, no disk I/O
- integration/ Component boundaries, real I/O to temp locations

Run specific levels:
    pytest tests/unit -v           # Fast feedback loop
    pytest tests/integration -v    # Before commit
    pytest tests -v                # Everything
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from vetverify.models import DocumentType


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast isolated tests")
    config.addinivalue_line("markers", "integration: Component boundary tests")
    config.addinivalue_line("markers", "slow: Tests that take > 1s")


@pytest.fixture
def vet_data():
    """A valid veterinarian onboarding form."""
    return {
        "full_name": "Dr. Aisha Sharma",
        "license_number": "VCI-12345",
        "specializations": ["Small Animals", "Dermatology"],
        "experience_years": 6,
        "consultation_fee": 500,
        "emergency_available": True,
        "clinics": [
            {
                "clinic_name": "Paws & Claws Clinic",
                "clinic_address": "12 MG Road, Bengaluru 560001",
                "clinic_phone": "98765 43210",
            }
        ],
        "languages_spoken": ["English", "Hindi"],
        "bio": "Companion animal vet.",
    }


@pytest.fixture
def vendor_data():
    """A valid vendor onboarding form."""
    return {
        "business_name": "Happy Tails Pet Store",
        "business_type": "pet_shop",
        "license_number": "BL-55555",
        "gst_number": "27aapfu0939f1zv",
        "business_address": "45 Linking Road, Mumbai 400050",
        "business_phone": "022-12345678",
        "delivery_available": True,
        "delivery_radius_km": 5,
    }


def _upload(document_type: DocumentType, name: str, **overrides) -> dict:
    data = {
        "document_type": document_type.value,
        "document_url": f"https://files.example.com/{name}",
        "filename": name,
        "progress": 100,
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_upload():
    """Build an upload dict; override progress, error, expires_at, etc."""
    return _upload


@pytest.fixture
def vet_uploads():
    return [
        _upload(DocumentType.LICENSE, "vci_license.pdf"),
        _upload(DocumentType.DEGREE, "bvsc_degree.pdf"),
    ]


@pytest.fixture
def vendor_uploads():
    return [
        _upload(DocumentType.BUSINESS_LICENSE, "trade_license.pdf"),
        _upload(DocumentType.GST_CERTIFICATE, "gst_certificate.pdf"),
    ]


# === Performance tracking ===

def pytest_terminal_summary(terminalreporter, exitstatus, config):
    """Add timing summary at end of test run."""
    stats = terminalreporter.stats

    # Collect slowest tests
    if 'passed' in stats:
        durations = []
        for report in stats['passed']:
            if hasattr(report, 'duration'):
                durations.append((report.duration, report.nodeid))

        if durations:
            durations.sort(reverse=True)
            terminalreporter.write_sep("=", "slowest 5 tests")
            for duration, nodeid in durations[:5]:
                terminalreporter.write_line(f"  {duration:.2f}s  {nodeid}")
