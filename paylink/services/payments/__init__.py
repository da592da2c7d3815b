from .base import PaymentAdapter, PaymentRequest, PaymentRequestSpec
from .razorpay_adapter import RazorpayAdapter

__all__ = ["PaymentAdapter", "PaymentRequest", "PaymentRequestSpec", "RazorpayAdapter"]
