"""
LINE message builders.

Every reply the bot sends is built here so the wording of a given outcome
lives in one place. Amounts are always rendered with two decimals.
"""

from typing import Dict, List, Optional

from app.schemas.bill import BillStatusResponse


def format_amount(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{value:,.2f}"


def text_message(text: str) -> Dict:
    return {"type": "text", "text": text}


def _row(label: str, value: str, color: str = "#111111") -> Dict:
    return {
        "type": "box",
        "layout": "horizontal",
        "margin": "sm",
        "contents": [
            {"type": "text", "text": label, "size": "sm", "color": "#888888", "flex": 2},
            {"type": "text", "text": value, "size": "sm", "color": color, "align": "end", "flex": 3, "wrap": True},
        ],
    }


def _card(alt_text: str, header: str, header_color: str, body: List[Dict]) -> Dict:
    return {
        "type": "flex",
        "altText": alt_text,
        "contents": {
            "type": "bubble",
            "header": {
                "type": "box",
                "layout": "vertical",
                "backgroundColor": header_color,
                "contents": [
                    {"type": "text", "text": header, "weight": "bold", "color": "#FFFFFF", "size": "md"}
                ],
            },
            "body": {"type": "box", "layout": "vertical", "spacing": "sm", "contents": body},
        },
    }


def _note(text: str) -> Dict:
    return {"type": "text", "text": text, "size": "sm", "wrap": True, "color": "#555555"}


def payment_confirmed(bill_title: str, expected: float, received: float, reference_id: Optional[str] = None) -> Dict:
    body = [
        _row("Bill", bill_title),
        _row("Expected", format_amount(expected)),
        _row("Received", format_amount(received), color="#1DB446"),
    ]
    if reference_id:
        body.append(_row("Ref", reference_id))
    return _card("Payment confirmed", "Payment confirmed", "#1DB446", body)


def payment_already_confirmed(bill_title: str, expected: float) -> Dict:
    body = [
        _row("Bill", bill_title),
        _row("Expected", format_amount(expected)),
        _note("This payment was already confirmed."),
    ]
    return _card("Payment already confirmed", "Already confirmed", "#1DB446", body)


def amount_mismatch(bill_title: str, expected: float, received: float) -> Dict:
    body = [
        _row("Bill", bill_title),
        _row("Expected", format_amount(expected)),
        _row("Received", format_amount(received), color="#E53935"),
        _note(
            f"Amount mismatch: expected {format_amount(expected)}, "
            f"received {format_amount(received)}. Please check the slip and send it again."
        ),
    ]
    return _card("Amount mismatch", "Amount mismatch", "#E53935", body)


def no_qr_detected() -> Dict:
    return _card(
        "No QR code detected",
        "No QR code detected",
        "#FB8C00",
        [_note("This image does not look like a transfer slip. Please send the slip image with its QR code visible.")],
    )


def no_pending_obligation(received: Optional[float] = None) -> Dict:
    body = [_note("No pending obligation found for you in this group.")]
    if received is not None:
        body.insert(0, _row("Received", format_amount(received)))
    return _card("No pending obligation found", "No pending bill", "#FB8C00", body)


def amount_not_detected() -> Dict:
    return _card(
        "Amount not detected",
        "Amount not detected",
        "#FB8C00",
        [_note("Could not read the transfer amount from this slip. Please send a clearer image.")],
    )


def extraction_failed() -> Dict:
    return _card(
        "Could not read slip",
        "Could not read slip",
        "#E53935",
        [_note("Something went wrong while reading the slip. Please try sending it again.")],
    )


def generic_failure() -> Dict:
    return text_message("Something went wrong while processing your slip. Please try again later.")


def bill_status(status: BillStatusResponse, alt_text: str = "Bill Status") -> Dict:
    rows = [
        {"type": "text", "text": status.title, "weight": "bold", "size": "lg", "wrap": True},
        {"type": "text", "text": f"Total: {format_amount(status.total_amount)}", "color": "#666666", "size": "sm"},
        {"type": "separator", "margin": "md"},
    ]
    for participant in status.participants:
        rows.append({
            "type": "box",
            "layout": "horizontal",
            "margin": "md",
            "contents": [
                {"type": "text", "text": "✅" if participant.is_paid else "❌", "size": "sm", "flex": 0},
                {"type": "text", "text": participant.display_name or "(unknown)", "flex": 2, "margin": "md"},
                {"type": "text", "text": format_amount(participant.amount_due), "align": "end", "flex": 1},
            ],
        })
    return {
        "type": "flex",
        "altText": alt_text,
        "contents": {
            "type": "bubble",
            "body": {"type": "box", "layout": "vertical", "spacing": "md", "contents": rows},
        },
    }


def open_bill_form(liff_url: str) -> Dict:
    return {
        "type": "template",
        "altText": "Open Create Bill",
        "template": {
            "type": "buttons",
            "text": "Create a new bill",
            "actions": [{"type": "uri", "label": "Open Create Bill", "uri": liff_url}],
        },
    }


def member_list(display_names: List[Optional[str]]) -> Dict:
    if not display_names:
        return text_message("No members registered yet.")
    lines = [f"{i}. {name or '(unknown)'}" for i, name in enumerate(display_names, start=1)]
    return text_message(
        "Members in this group\n\n"
        + "\n".join(lines)
        + "\n\nOnly members who have sent at least one message are shown."
    )
