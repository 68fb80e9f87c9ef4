from decimal import Decimal

from django import forms
from django.core.validators import RegexValidator

from shophub.errors import ValidationError

PAYMENT_METHODS = ("razorpay", "stripe", "cod")

indian_mobile = RegexValidator(r"^(\+91[\-\s]?|91|0)?[6-9]\d{9}$", "Enter a valid Indian mobile number.")
indian_pincode = RegexValidator(r"^[1-9]\d{5}$", "Enter a valid 6 digit pincode.")


class OrderForm(forms.Form):
    """Top-level order fields; items and address are validated by their own forms."""

    customerEmail = forms.EmailField()
    customerName = forms.CharField(min_length=2, max_length=100)
    totalAmount = forms.DecimalField(min_value=Decimal("0.01"))
    paymentMethod = forms.ChoiceField(choices=[(m, m) for m in PAYMENT_METHODS])

    def clean_customerEmail(self):
        return self.cleaned_data["customerEmail"].lower()


class OrderItemForm(forms.Form):
    name = forms.CharField(min_length=1)
    quantity = forms.IntegerField(min_value=1)
    price = forms.DecimalField(min_value=Decimal(0))


class ShippingAddressForm(forms.Form):
    fullName = forms.CharField(min_length=2)
    mobile = forms.CharField(validators=[indian_mobile])
    pincode = forms.CharField(validators=[indian_pincode])
    address = forms.CharField(min_length=10)
    city = forms.CharField(min_length=2)
    state = forms.CharField(min_length=2)


def _collect(form, prefix, errors):
    for name, messages in form.errors.items():
        for message in messages:
            errors.append({"field": f"{prefix}{name}", "message": str(message)})


def validate_order(payload: dict) -> dict:
    """Validate an order submission, returning cleaned data.

    Every problem is reported at once; raises ``ValidationError`` whose
    ``errors`` is a list of ``{field, message}`` dicts.
    """
    errors = []
    form = OrderForm(payload)
    form.is_valid()
    _collect(form, "", errors)

    items = payload.get("items")
    cleaned_items = []
    if not isinstance(items, list) or not items:
        errors.append({"field": "items", "message": "At least one item is required."})
    else:
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                errors.append({"field": f"items[{index}]", "message": "Item must be an object."})
                continue
            item_form = OrderItemForm(item)
            if item_form.is_valid():
                cleaned_items.append(item_form.cleaned_data)
            else:
                _collect(item_form, f"items[{index}].", errors)

    address = payload.get("shippingAddress")
    address_form = ShippingAddressForm(address if isinstance(address, dict) else {})
    address_form.is_valid()
    _collect(address_form, "shippingAddress.", errors)

    if errors:
        raise ValidationError("Validation failed", errors=errors)

    data = dict(form.cleaned_data)
    data["items"] = cleaned_items
    data["shippingAddress"] = address_form.cleaned_data
    return data
