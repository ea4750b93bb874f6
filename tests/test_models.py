"""Tests for request and response models."""

from datetime import date, timedelta

import pytest

from approvalflow.models import ExpenseIn, ExpenseOut


def test_expense_in_rejects_future_dates():
    with pytest.raises(ValueError):
        ExpenseIn(amount=1, currency="USD", expense_date=date(2999, 1, 1))


def test_expense_in_uppercases_currency():
    assert ExpenseIn(amount=5, currency="eur", expense_date=date.today()).currency == "EUR"


def test_expense_out_renders_stored_rows_as_is():
    # A row dated "tomorrow" from the server's point of view still serialises
    row = {
        "id": 1,
        "company_id": 1,
        "submitter_id": 2,
        "amount": 10.0,
        "currency": "USD",
        "description": None,
        "expense_date": (date.today() + timedelta(days=1)).isoformat(),
        "status": "approved",
        "version": 2,
        "created_at": "2024-05-01T10:00:00.000Z",
        "updated_at": "2024-05-01T10:00:00.000Z",
    }
    out = ExpenseOut.model_validate(row)
    assert out.expense_date == date.today() + timedelta(days=1)
    assert out.status == "approved"
