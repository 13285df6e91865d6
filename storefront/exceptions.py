"""
Checkout error taxonomy.

Every failure the pipeline can surface to a customer is one of these.
Gateway, HTTP and database errors are converted at the service layer so
route handlers never see raw third-party exceptions.
"""


class CheckoutError(Exception):
    status_code = 400
    code = "checkout_error"
    retryable = False

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    def default_message(self) -> str:
        return "Checkout failed"

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }


# -------------------------
# VALIDATION
# -------------------------

class ValidationError(CheckoutError):
    status_code = 422
    code = "validation_error"


class EmptyCartError(ValidationError):
    code = "empty_cart"

    def default_message(self):
        return "Your cart is empty."


class MissingShippingError(ValidationError):
    code = "missing_shipping"

    def default_message(self):
        return "Please select a shipping method."


class InvalidCouponError(ValidationError):
    code = "invalid_coupon"

    def default_message(self):
        # Same message for unknown, inactive and expired codes
        return "The coupon code you entered is invalid or has expired."


class InvalidCustomerInfoError(ValidationError):
    code = "invalid_customer_info"

    def default_message(self):
        return "Customer information is incomplete."


class InvalidPincodeError(ValidationError):
    code = "invalid_pincode"

    def default_message(self):
        return "Please enter a valid 6-digit pincode."


class UnserviceableError(ValidationError):
    code = "unserviceable"

    def default_message(self):
        return "Delivery is not available for this pincode."


# -------------------------
# PAYMENT
# -------------------------

class PaymentError(CheckoutError):
    status_code = 402
    code = "payment_failed"
    retryable = True


class GatewayOrderError(PaymentError):
    code = "gateway_order_error"

    def default_message(self):
        return "Failed to initialize payment. Please try again later."


class SignatureVerificationError(PaymentError):
    code = "signature_verification_failed"

    def default_message(self):
        return "Payment verification failed."


# -------------------------
# STARTUP
# -------------------------

class StartupError(CheckoutError):
    status_code = 400
    code = "payment_startup_error"

    def default_message(self):
        return "Payment could not be started. Please choose another method."


# -------------------------
# PERSISTENCE / STATE
# -------------------------

class PersistentPermissionError(CheckoutError):
    status_code = 503
    code = "persistent_permission_error"

    def default_message(self):
        return (
            "We could not save your order due to a store configuration "
            "problem. Please contact support."
        )


class OrderNotFoundError(CheckoutError):
    status_code = 404
    code = "order_not_found"

    def default_message(self):
        return "Order not found"


class InvalidTransitionError(CheckoutError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, current: str, new: str):
        self.current = current
        self.new = new
        super().__init__(f"Cannot change order status from {current} to {new}")


class ShippingServiceError(CheckoutError):
    status_code = 502
    code = "shipping_service_error"
    retryable = True

    def default_message(self):
        return "Failed to check delivery availability. Please try again."


class OrderPersistenceError(CheckoutError):
    status_code = 503
    code = "order_persistence_error"
    retryable = True

    def default_message(self):
        return "We could not save your order. Please try again."
