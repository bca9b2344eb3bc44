"""Unit tests for payment destination schemas."""

import pytest
from pydantic import ValidationError
from services.ledger_service.schemas import PaymentMethodCreate


@pytest.mark.unit
@pytest.mark.parametrize("vpa", ["asha@okicici", "asha.k-91_x@ybl"])
def test_upi_vpa_accepted(vpa):
    body = PaymentMethodCreate.model_validate({"details": {"method_type": "upi", "vpa": vpa}})
    assert body.details.method_type == "upi"
    assert body.details.vpa == vpa


@pytest.mark.unit
@pytest.mark.parametrize("vpa", ["asha", "a@okicici", "asha@ok1cici", "ash a@ybl"])
def test_upi_vpa_rejected(vpa):
    with pytest.raises(ValidationError):
        PaymentMethodCreate.model_validate({"details": {"method_type": "upi", "vpa": vpa}})


@pytest.mark.unit
def test_bank_account_ifsc_normalised():
    body = PaymentMethodCreate.model_validate(
        {
            "details": {
                "method_type": "bank_account",
                "account_number": "123456789012",
                "ifsc": "hdfc0001234",
                "account_holder_name": "Asha K",
            }
        }
    )
    assert body.details.ifsc == "HDFC0001234"
