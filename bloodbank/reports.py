# bloodbank/reports.py
import csv
from io import StringIO

from fpdf import FPDF

DONOR_CSV_COLUMNS = [
    ('id', 'Donor ID'),
    ('name', 'Name'),
    ('age', 'Age'),
    ('gender', 'Gender'),
    ('contact', 'Contact'),
    ('blood_group', 'Blood Group'),
    ('address', 'Address'),
    ('medical_history', 'Medical History'),
]


def donors_csv(donors):
    """Render donors as CSV text with a header row"""
    si = StringIO()
    writer = csv.writer(si)
    writer.writerow([title for _, title in DONOR_CSV_COLUMNS])
    for donor in donors:
        writer.writerow([getattr(donor, attr) for attr, _ in DONOR_CSV_COLUMNS])
    return si.getvalue()


def inventory_pdf(inventory_rows, generated_on):
    """Render per-group inventory rows as a one page PDF and return its bytes"""
    pdf = FPDF()
    pdf.add_page()
    pdf.set_font("Helvetica", 'B', 20)
    pdf.cell(0, 12, "Blood Inventory Report", align='C', new_x='LMARGIN', new_y='NEXT')
    pdf.set_font("Helvetica", '', 12)
    pdf.cell(0, 10, f"Generated on: {generated_on.isoformat()}", align='C', new_x='LMARGIN', new_y='NEXT')
    pdf.ln(6)

    pdf.set_font("Helvetica", 'B', 12)
    pdf.cell(60, 10, "Blood Group", border=1)
    pdf.cell(60, 10, "Units Available", border=1, new_x='LMARGIN', new_y='NEXT')
    pdf.set_font("Helvetica", '', 12)
    total = 0
    for row in inventory_rows:
        pdf.cell(60, 10, row['blood_group'], border=1)
        pdf.cell(60, 10, f"{row['total_quantity']} units", border=1, new_x='LMARGIN', new_y='NEXT')
        total += row['total_quantity']
    pdf.set_font("Helvetica", 'B', 12)
    pdf.cell(60, 10, "Total", border=1)
    pdf.cell(60, 10, f"{total} units", border=1, new_x='LMARGIN', new_y='NEXT')
    return bytes(pdf.output())
