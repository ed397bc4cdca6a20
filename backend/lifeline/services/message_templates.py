"""SMS and email bodies for emergency notifications."""
from datetime import datetime
from html import escape
from typing import Optional

from lifeline.services.geomatch import maps_url

MAX_EMAIL_FACILITIES = 5

PANIC = "PANIC"
ACCESS = "ACCESS"


def _location_line(location) -> str:
    if location is None:
        return "Location: not available"
    return f"Location: {maps_url(location.latitude, location.longitude)}"


def sms_body(
    kind: str,
    patient_name: str,
    location,
    accessor_name: Optional[str] = None,
    nearest_facility: Optional[str] = None,
) -> str:
    if kind == PANIC:
        lines = [
            "LIFELINE ALERT - EMERGENCY",
            "",
            f"{patient_name} has activated the panic button.",
            "",
            _location_line(location),
        ]
        if nearest_facility:
            lines += ["", f"Nearest hospital: {nearest_facility}"]
        lines += ["", "Please get in touch immediately."]
    else:
        lines = [
            "LIFELINE ALERT",
            "",
            f"The medical information of {patient_name} has been accessed.",
            "",
            f"Accessed by: {accessor_name or 'Medical staff'}",
            _location_line(location),
        ]
        if nearest_facility:
            lines += ["", f"Nearby hospital: {nearest_facility}"]
        lines += ["", "This is an authorized emergency access."]
    return "\n".join(lines)


def email_subject(kind: str, patient_name: str) -> str:
    if kind == PANIC:
        return f"EMERGENCY ALERT - {patient_name} has activated the panic button"
    return f"LIFELINE ALERT - Medical information of {patient_name} was accessed"


def _facility_rows_html(facilities) -> str:
    rows = []
    for match in facilities[:MAX_EMAIL_FACILITIES]:
        phone = match.contact_phone
        call = (
            f'<a href="tel:{escape(phone)}" style="background:#dc2626;color:white;padding:8px 16px;'
            f'border-radius:20px;text-decoration:none;">Call {escape(phone)}</a>'
            if phone
            else ""
        )
        rows.append(
            '<tr style="border-bottom:1px solid #e5e7eb;">'
            f'<td style="padding:10px 0;"><strong>{escape(match.name)}</strong><br>'
            f'<span style="color:#6b7280;font-size:14px;">{match.distance:.1f} km away</span></td>'
            f'<td style="text-align:right;padding:10px 0;">{call}</td>'
            "</tr>"
        )
    if not rows:
        return ""
    return (
        '<h3 style="color:#0284c7;margin-top:20px;">Nearby hospitals:</h3>'
        f'<table style="width:100%;border-collapse:collapse;">{"".join(rows)}</table>'
    )


def email_html(
    kind: str,
    patient_name: str,
    location,
    sent_at: datetime,
    accessor_name: Optional[str] = None,
    nearest_facility: Optional[str] = None,
    facilities=(),
) -> str:
    is_panic = kind == PANIC
    name = escape(patient_name)
    header_color = "#dc2626" if is_panic else "#f59e0b"
    header = "EMERGENCY" if is_panic else "LIFELINE ALERT"
    lead = (
        f"<strong>{name}</strong> has activated the panic button and needs immediate help."
        if is_panic
        else f"The medical information of <strong>{name}</strong> has been accessed."
    )
    accessor = (
        f'<p style="color:#6b7280;"><strong>Accessed by:</strong> {escape(accessor_name)}</p>'
        if not is_panic and accessor_name
        else ""
    )
    if location is not None:
        location_block = (
            f'<a href="{maps_url(location.latitude, location.longitude)}" style="display:inline-block;'
            'background:#2563eb;color:white;padding:12px 24px;border-radius:8px;text-decoration:none;'
            'font-weight:600;">Open in Google Maps</a>'
        )
    else:
        location_block = '<p style="color:#6b7280;">Location not available</p>'
    nearest = (
        f'<p style="color:#6b7280;margin-top:10px;">Nearest hospital: <strong>{escape(nearest_facility)}</strong></p>'
        if nearest_facility
        else ""
    )

    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"></head>
<body style="font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;margin:0;padding:20px;background:#f3f4f6;">
  <div style="max-width:600px;margin:0 auto;background:white;border-radius:16px;overflow:hidden;">
    <div style="background:{header_color};color:white;padding:24px;text-align:center;">
      <h1 style="margin:0;font-size:24px;">{header}</h1>
    </div>
    <div style="padding:24px;">
      <p style="font-size:18px;color:#1f2937;margin-bottom:20px;">{lead}</p>
      {accessor}
      <div style="background:#f9fafb;border-radius:12px;padding:16px;margin:20px 0;">
        <h3 style="color:#374151;margin:0 0 10px 0;">Location</h3>
        {location_block}
        {nearest}
      </div>
      {_facility_rows_html(list(facilities))}
      <div style="margin-top:24px;padding-top:20px;border-top:1px solid #e5e7eb;">
        <p style="color:#9ca3af;font-size:14px;margin:0;">
          This message was sent automatically by Lifeline.<br>{sent_at.strftime("%Y-%m-%d %H:%M UTC")}
        </p>
      </div>
    </div>
  </div>
</body>
</html>"""


def email_text(
    kind: str,
    patient_name: str,
    location,
    accessor_name: Optional[str] = None,
    nearest_facility: Optional[str] = None,
    facilities=(),
) -> str:
    lines = [sms_body(kind, patient_name, location, accessor_name, nearest_facility)]
    facilities = list(facilities)[:MAX_EMAIL_FACILITIES]
    if facilities:
        lines += ["", "Nearby hospitals:"]
        for match in facilities:
            phone = f" - {match.contact_phone}" if match.contact_phone else ""
            lines.append(f"  * {match.name} ({match.distance:.1f} km){phone}")
    return "\n".join(lines)
