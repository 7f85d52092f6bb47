"""Message bodies for each notification template."""

from __future__ import annotations

from dataclasses import dataclass

TEMPLATES = ("confirmation", "otp", "deposit_captured", "deposit_released", "booking_voided")


@dataclass(frozen=True)
class Message:
    subject: str
    email_body: str
    sms_body: str


def _when(value) -> str:
    return value.strftime("%b %d, %Y %H:%M UTC")


def render_message(template_type: str, booking, context: dict | None = None) -> Message:
    if template_type not in TEMPLATES:
        raise ValueError(f"Unknown notification template: {template_type}")
    context = context or {}
    code = booking.booking_code
    name = booking.user.full_name or booking.user.email

    if template_type == "otp":
        otp = context["code"]
        text = f"Your booking verification code is: {otp}. This code expires in 10 minutes. Booking ref: {code}"
        return Message(
            subject=f"Your verification code for booking {code}",
            email_body=f"Hello {name},\n\n{text}\n\nIf you did not request this code, ignore this message.",
            sms_body=text,
        )

    if template_type == "confirmation":
        vehicle = booking.vehicle.name
        return Message(
            subject=f"Booking {code} confirmed",
            email_body=(
                f"Hello {name},\n\n"
                f"Your reservation of the {vehicle} is confirmed.\n"
                f"Pickup: {_when(booking.start_at)}\n"
                f"Return: {_when(booking.end_at)}\n"
                f"Total: ${booking.total_amount} {booking.currency}\n"
                f"Deposit hold: ${booking.deposit_amount} {booking.currency}\n"
            ),
            sms_body=f"Booking {code} confirmed: {vehicle}, pickup {_when(booking.start_at)}. Total ${booking.total_amount}.",
        )

    if template_type == "deposit_captured":
        amount = context.get("amount", booking.deposit_captured_amount)
        return Message(
            subject=f"Deposit charge for booking {code}",
            email_body=(
                f"Hello {name},\n\n"
                f"${amount} {booking.currency} of your deposit hold was charged.\n"
                f"Reason: {context.get('reason', '')}\n"
                "Any remaining hold has been released."
            ),
            sms_body=f"${amount} of your deposit for booking {code} was charged. Remaining hold released.",
        )

    if template_type == "deposit_released":
        return Message(
            subject=f"Deposit released for booking {code}",
            email_body=(
                f"Hello {name},\n\n"
                f"The ${booking.deposit_amount} {booking.currency} hold on your card has been released. "
                "Your bank may take a few days to show it."
            ),
            sms_body=f"The deposit hold for booking {code} has been released.",
        )

    return Message(
        subject=f"Booking {code} cancelled",
        email_body=f"Hello {name},\n\nYour booking {code} has been cancelled. Reason: {booking.void_reason}",
        sms_body=f"Booking {code} has been cancelled.",
    )
