from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from . import calculations


class InvoicePDF:
    """Lays out one invoice (with its client and items attached) as an A4 PDF.

    Amounts on the page are recomputed with the same calculator used at
    creation time, so the document always matches the invoice preview.
    """

    def __init__(self, invoice, profile=None):
        self.invoice = invoice
        # Ensure all profile values are strings (handle None from the store)
        self.profile = {k: (v if v is not None else "") for k, v in (profile or {}).items()}
        self.font_name = 'Helvetica'
        self.bold_font_name = 'Helvetica-Bold'

    @property
    def filename(self):
        return f"Invoice-{self.invoice['invoice_number']}.pdf"

    def money(self, amount):
        return calculations.format_currency(amount, self.invoice.get('currency') or 'USD')

    def text(self, value, style):
        return Paragraph(escape(str(value or "")).replace('\n', '<br/>'), style)

    def generate(self, target):
        """Write the PDF to ``target``: a filename or a binary file object."""
        doc = SimpleDocTemplate(target, pagesize=A4, rightMargin=40, leftMargin=40, topMargin=40, bottomMargin=40,
                                title=self.filename)
        story = []
        styles = getSampleStyleSheet()

        normal_style = ParagraphStyle('Normal_Custom', parent=styles['Normal'], fontName=self.font_name, fontSize=10, leading=14)
        muted_style = ParagraphStyle('Muted_Custom', parent=normal_style, textColor=colors.gray)
        bold_style = ParagraphStyle('Bold_Custom', parent=styles['Normal'], fontName=self.bold_font_name, fontSize=10, leading=14)
        white_bold_style = ParagraphStyle('WhiteBold_Custom', parent=bold_style, textColor=colors.white)
        title_style = ParagraphStyle('Title_Custom', parent=styles['Heading1'], fontName=self.bold_font_name, fontSize=24, spaceAfter=20, alignment=2)
        right_style = ParagraphStyle('Right_Custom', parent=normal_style, alignment=2)
        right_bold_style = ParagraphStyle('RightBold_Custom', parent=bold_style, alignment=2)

        invoice = self.invoice
        client = invoice.get('client') or {}
        items = invoice.get('invoice_items') or []
        amounts = calculations.calculate_invoice(items, invoice.get('discount'), invoice.get('tax_rate'))

        # Header: sender (left) | INVOICE title (right)
        sender_info = [self.text(self.profile.get('company') or self.profile.get('name'), bold_style)]
        if self.profile.get('company') and self.profile.get('name'):
            sender_info.append(self.text(self.profile['name'], normal_style))
        for key in ('address', 'email', 'phone'):
            if self.profile.get(key):
                sender_info.append(self.text(self.profile[key], normal_style))

        invoice_title = [
            Paragraph("INVOICE", title_style),
            self.text(f"#{invoice['invoice_number']}", ParagraphStyle('InvNum', parent=right_style, fontSize=12, textColor=colors.gray)),
            self.text(invoice.get('status', '').upper(), right_style),
        ]

        header_table = Table([[sender_info, invoice_title]], colWidths=[3.5*inch, 2.5*inch])
        header_table.setStyle(TableStyle([
            ('VALIGN', (0,0), (-1,-1), 'TOP'),
            ('LEFTPADDING', (0,0), (-1,-1), 0),
            ('RIGHTPADDING', (0,0), (-1,-1), 0),
        ]))
        story.append(header_table)
        story.append(Spacer(1, 0.4*inch))

        # Bill to (left) | dates and balance (right)
        bill_to = [Paragraph("Bill To:", muted_style), self.text(client.get('name'), bold_style)]
        for key in ('company', 'address', 'email', 'phone'):
            if client.get(key):
                bill_to.append(self.text(client[key], normal_style))
        if client.get('tax_id'):
            bill_to.append(self.text(f"Tax ID: {client['tax_id']}", normal_style))

        details_data = [
            [self.text("Invoice Date:", right_style), self.text(invoice.get('issue_date'), right_style)],
            [self.text("Due Date:", right_style), self.text(invoice.get('due_date'), right_style)],
            [self.text("Balance Due:", right_bold_style), self.text(self.money(amounts.total), right_bold_style)],
        ]
        details_table = Table(details_data, colWidths=[1.8*inch, 1.4*inch])
        details_table.setStyle(TableStyle([
            ('VALIGN', (0,0), (-1,-1), 'MIDDLE'),
            ('BACKGROUND', (0,2), (-1,2), colors.whitesmoke),
            ('PADDING', (0,2), (-1,2), 6),
        ]))

        mid_table = Table([[bill_to, details_table]], colWidths=[3.0*inch, 3.2*inch])
        mid_table.setStyle(TableStyle([
            ('VALIGN', (0,0), (-1,-1), 'TOP'),
            ('LEFTPADDING', (0,0), (-1,-1), 0),
        ]))
        story.append(mid_table)
        story.append(Spacer(1, 0.4*inch))

        # Line items
        items_data = [[
            Paragraph("Item", white_bold_style),
            Paragraph("Qty", white_bold_style),
            Paragraph("Price", white_bold_style),
            Paragraph("Disc.", white_bold_style),
            Paragraph("Amount", white_bold_style),
        ]]
        for item in items:
            label = escape(item.get('name') or "")
            if item.get('description'):
                label += f"<br/><font color='grey' size='8'>{escape(item['description'])}</font>"
            items_data.append([
                Paragraph(label, normal_style),
                self.text(item.get('quantity'), normal_style),
                self.text(self.money(item.get('price') or 0), normal_style),
                self.text(f"{item.get('discount') or 0:g}%", normal_style),
                self.text(self.money(calculations.line_amount(item)), normal_style),
            ])

        # repeatRows keeps the header on every page for long invoices
        items_table = Table(items_data, colWidths=[2.6*inch, 0.7*inch, 1.0*inch, 0.7*inch, 1.1*inch], repeatRows=1)
        items_table.setStyle(TableStyle([
            ('BACKGROUND', (0,0), (-1,0), colors.Color(0.2, 0.2, 0.2)),
            ('TEXTCOLOR', (0,0), (-1,0), colors.white),
            ('ALIGN', (0,0), (-1,-1), 'LEFT'),
            ('FONTNAME', (0,0), (-1,-1), self.font_name),
            ('VALIGN', (0,0), (-1,-1), 'MIDDLE'),
            ('PADDING', (0,0), (-1,-1), 8),
            ('LINEBELOW', (0,1), (-1,-1), 0.25, colors.lightgrey),
        ]))
        story.append(items_table)
        story.append(Spacer(1, 0.2*inch))

        # Totals, pushed to the right
        totals_data = [[Paragraph("Subtotal:", bold_style), self.text(self.money(amounts.subtotal), right_style)]]
        if invoice.get('discount'):
            totals_data.append([
                self.text(f"Discount ({invoice['discount']:g}%):", bold_style),
                self.text(self.money(-amounts.discount_amount), right_style),
            ])
        totals_data.append([
            self.text(f"Tax ({invoice.get('tax_rate') or 0:g}%):", bold_style),
            self.text(self.money(amounts.tax_amount), right_style),
        ])
        totals_data.append([Paragraph("Total:", bold_style), self.text(self.money(amounts.total), right_bold_style)])

        totals_table = Table(totals_data, colWidths=[1.5*inch, 1.5*inch])
        totals_table.setStyle(TableStyle([
            ('VALIGN', (0,0), (-1,-1), 'TOP'),
            ('LINEABOVE', (0,-1), (-1,-1), 0.5, colors.black),
        ]))
        story.append(Table([[None, totals_table]], colWidths=[3.1*inch, 3.1*inch]))
        story.append(Spacer(1, 0.4*inch))

        # Notes, terms, payment link
        for label, key in (("Notes:", 'notes'), ("Terms:", 'terms')):
            if invoice.get(key):
                story.append(Paragraph(label, bold_style))
                story.append(self.text(invoice[key], normal_style))
                story.append(Spacer(1, 10))

        if invoice.get('payment_link'):
            story.append(Paragraph("Pay online:", bold_style))
            link = escape(invoice['payment_link'])
            story.append(Paragraph(f"<link href='{link}' color='blue'>{link}</link>", normal_style))

        doc.build(story)
        return target
