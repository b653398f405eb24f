import csv
from io import StringIO

import pytest

from bloodbank import reports, services

pytestmark = pytest.mark.django_db


def test_donor_csv_export(staff_client, donor):
    response = staff_client.get('/api/export/donors/csv')

    assert response.status_code == 200
    assert response['Content-Type'] == 'text/csv'
    assert 'attachment; filename="donors_export_' in response['Content-Disposition']
    rows = list(csv.reader(StringIO(response.content.decode())))
    assert rows[0] == ['Donor ID', 'Name', 'Age', 'Gender', 'Contact', 'Blood Group',
                       'Address', 'Medical History']
    assert rows[1][:3] == [str(donor.pk), 'Asha Rao', '30']
    assert len(rows) == 2


def test_inventory_pdf_export(staff_client):
    response = staff_client.get('/api/export/inventory/pdf')

    assert response.status_code == 200
    assert response['Content-Type'] == 'application/pdf'
    assert response.content.startswith(b'%PDF')


def test_inventory_pdf_renders_every_group(today):
    content = reports.inventory_pdf(services.get_inventory(), today)
    assert content.startswith(b'%PDF')


def test_exports_require_authentication(anon_client):
    assert anon_client.get('/api/export/donors/csv').status_code == 401
    assert anon_client.get('/api/export/inventory/pdf').status_code == 401
