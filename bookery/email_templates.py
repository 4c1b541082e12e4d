"""
MJML Email Templates
Transactional emails for booking notifications
"""

from html import escape
from typing import Optional

from .config import FRONTEND_URL

THEME = {
    "primary": "#db2777",
    "primary_dark": "#be185d",
    "background": "#fdf2f8",
    "text_primary": "#111827",
    "text_secondary": "#374151",
    "text_muted": "#6b7280",
    "border": "#e5e7eb",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button href="{cta_url}" background-color="{THEME['primary']}" color="#ffffff" font-weight="600" border-radius="8px" font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 16px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}">
              {title}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" />
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="24px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="{THEME['text_muted']}">
              You're receiving this because you are a specialist on Bookery.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def format_amount(amount_minor: int, currency: str) -> str:
    return f"{currency} {amount_minor / 100:,.2f}"


def specialist_new_booking_template(
    specialist_name: str,
    client_name: str,
    booking_label: str,
    order_reference: str,
    amount_minor: int,
    currency: str,
    scheduled_date: Optional[str] = None,
    scheduled_time: Optional[str] = None,
    addresses: Optional[dict[str, str]] = None,
) -> str:
    """New job alert sent to the assigned specialist"""

    # Names, addresses and times come from client input
    specialist_name = escape(specialist_name)
    client_name = escape(client_name)
    order_reference = escape(order_reference)
    when = escape(" ".join(part for part in (scheduled_date, scheduled_time) if part) or "To be arranged")

    address_rows = ""
    for label, address in (addresses or {}).items():
        if address:
            address_rows += f"{escape(label)}: {escape(address)}<br/>"

    content = f"""
    <mj-text>
      Hi {specialist_name},
    </mj-text>

    <mj-text>
      You have a new {booking_label} booking from <strong>{client_name}</strong>.
    </mj-text>

    <mj-text>
      Order: <strong>{order_reference}</strong><br/>
      When: {when}<br/>
      {address_rows}
      Total: <strong>{format_amount(amount_minor, currency)}</strong>
    </mj-text>
    """

    return get_base_template(
        title=f"New {booking_label} booking",
        preview_text=f"New booking {order_reference} from {client_name}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/specialist/bookings",
        cta_label="View booking",
    )
