"""
Checkout flow messages - single source of truth.

This module contains all the customer-facing messages used during checkout.
Import from here instead of hardcoding strings in policies and handlers.
"""


class CheckoutMessages:
    """Standard messages for the checkout flow."""

    # Delivery date
    DATE_REQUIRED = "Please choose a delivery date."
    DATE_INVALID_FORMAT = "That doesn't look like a date. Please pick one from the calendar."
    DATE_OUT_OF_WINDOW = "Deliveries can be scheduled between {start} and {end}."
    DATE_CLAMPED_TO_EARLIEST = "The earliest delivery is tomorrow, so we set the date to {date}."
    DATE_CLAMPED_TO_LATEST = "We deliver up to a week ahead, so we set the date to {date}."
    DATE_SUNDAY = "We don't deliver on Sundays. Please choose another day."
    DATE_SUNDAY_ADVANCED = "We don't deliver on Sundays, so we moved your delivery to {date}."
    DATE_OFF_DAY = "We're not delivering on {date}. Please choose another day."
    DATE_SCHEDULING_EXHAUSTED = (
        "There is no available delivery day in the next week. Please try again later."
    )

    # Time slot
    TIME_SLOT_REQUIRED = "Please choose a delivery time."
    TIME_SLOT_INVALID = "Please choose one of the offered delivery times."

    # Recipient
    NAME_TOO_SHORT = "Please enter the recipient's name (at least {min_length} characters)."
    PHONE_REQUIRED = "Please enter the recipient's mobile number."
    PHONE_MUST_START_WITH_5 = "Mobile numbers must start with 5."
    PHONE_INVALID = "Please enter a valid mobile number (5XX XXX XX XX)."
    STREET_TOO_SHORT = "Please enter the street name."
    BUILDING_REQUIRED = "Please enter the building number."

    # Region
    DISTRICT_REQUIRED = "Please choose a delivery district."
    DISTRICT_CLOSED = "We are temporarily not delivering to {district}."
    SECONDARY_REGION_CLOSED = "Deliveries to the Anatolian side are coming soon."
    NEIGHBORHOOD_REQUIRED = "Please choose a neighborhood."
    NEIGHBORHOOD_CLOSED = "We are temporarily not delivering to {neighborhood}."
    UNSUPPORTED_CITY = "We only deliver within {city}. Please choose another address."
    UNSUPPORTED_DISTRICT = "We can't deliver to {district} right now. Please choose another address."

    # Identity
    IDENTITY_UNDECIDED = "Please continue as a guest or sign in."
    GUEST_EMAIL_INVALID = "Please enter a valid e-mail address."
    GUEST_PHONE_INVALID = "Please enter a valid mobile number (5XX XXX XX XX)."
    MEMBER_LOGIN_REQUIRED = "Please sign in to continue with your account."
    LOGIN_FAILED = "We couldn't sign you in. Please check the code and try again."

    # Payment
    TERMS_REQUIRED = "Please accept the terms of sale to continue."
    SENDER_NAME_REQUIRED = "Please enter the sender's name."
    ORDER_FAILED = "We couldn't create your order. Please try again."
    PAYMENT_INIT_FAILED = "We couldn't start the card payment. Please try again."
    PAYMENT_FAILED = "Your payment was not completed. You can try again."
    EMPTY_CART = "Your cart is empty."
