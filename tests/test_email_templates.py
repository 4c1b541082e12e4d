from bookery.email_templates import format_amount, specialist_new_booking_template


def test_client_supplied_fields_are_escaped():
    mjml = specialist_new_booking_template(
        specialist_name="Efua",
        client_name="<b>Eve</b>",
        booking_label="laundry",
        order_reference="LDR-20261019-AB12CD",
        amount_minor=4400,
        currency="GHS",
        scheduled_date="2026-11-02",
        scheduled_time="09:00",
        addresses={"Pickup": '<img src="x" onerror="alert(1)">', "Delivery": "12 Oxford St & Co"},
    )

    assert "<b>Eve</b>" not in mjml
    assert "&lt;b&gt;Eve&lt;/b&gt;" in mjml
    assert "<img" not in mjml
    assert "Pickup: &lt;img src=&quot;x&quot;" in mjml
    assert "12 Oxford St &amp; Co" in mjml


def test_booking_details_are_listed():
    mjml = specialist_new_booking_template(
        specialist_name="Efua",
        client_name="Ama Mensah",
        booking_label="beauty",
        order_reference="APT-20261019-4F9A1C",
        amount_minor=12000,
        currency="GHS",
    )

    assert "APT-20261019-4F9A1C" in mjml
    assert "To be arranged" in mjml
    assert format_amount(12000, "GHS") == "GHS 120.00"
    assert "GHS 120.00" in mjml
