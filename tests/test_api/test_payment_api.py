"""
Test suite for the payment endpoints.
"""

import uuid
from decimal import Decimal

from fastapi import status

from car_stock.database.models.payment import PaymentStatus, PaymentType
from car_stock.database.models.sale import SaleStatus
from car_stock.database.models.user import UserRole

PAYMENTS = "/api/v1/payments"


class TestRecordPaymentEndpoint:
    def test_record(self, test_client, store, act_as, add_sale) -> None:
        sale = add_sale(SaleStatus.RESERVED)
        act_as(UserRole.ACCOUNTANT)

        response = test_client.post(
            PAYMENTS,
            json={
                "sale_id": str(sale.id),
                "amount": "25000.00",
                "method": "BANK_TRANSFER",
                "payment_type": "DEPOSIT",
            },
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["payment"]["status"] == "ACTIVE"
        assert data["payment"]["receipt_number"].startswith("RCPT-")
        assert data["sale_status"] == "RESERVED"
        assert Decimal(data["sale_paid_amount"]) == Decimal("25000.00")
        assert data["alerts"] == []
        assert len(store.payments) == 1

    def test_zero_amount_rejected(self, test_client, add_sale) -> None:
        sale = add_sale(SaleStatus.RESERVED)

        response = test_client.post(
            PAYMENTS,
            json={
                "sale_id": str(sale.id),
                "amount": "0",
                "method": "CASH",
                "payment_type": "DEPOSIT",
            },
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_overpayment_guard(self, test_client, act_as, add_sale, add_payment) -> None:
        sale = add_sale(SaleStatus.CONTRACTED)
        add_payment(sale, Decimal("490000.00"))
        act_as(UserRole.ACCOUNTANT)

        response = test_client.post(
            PAYMENTS,
            json={
                "sale_id": str(sale.id),
                "amount": "20000.00",
                "method": "CASH",
                "payment_type": "FINANCE_PAYMENT",
            },
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "GUARD_FAILED"

    def test_overpayment_override_alert(self, test_client, add_sale, add_payment) -> None:
        sale = add_sale(SaleStatus.CONTRACTED)
        add_payment(sale, Decimal("490000.00"))

        response = test_client.post(
            PAYMENTS,
            json={
                "sale_id": str(sale.id),
                "amount": "20000.00",
                "method": "CASH",
                "payment_type": "FINANCE_PAYMENT",
                "allow_overpayment": True,
            },
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["payment"]["overpayment_flagged"] is True
        assert data["alerts"][0]["code"] == "OVERPAYMENT"
        assert Decimal(data["alerts"][0]["amount"]) == Decimal("10000.00")

    def test_sales_manager_forbidden(self, test_client, act_as, add_sale) -> None:
        sale = add_sale(SaleStatus.RESERVED)
        act_as(UserRole.SALES_MANAGER)

        response = test_client.post(
            PAYMENTS,
            json={
                "sale_id": str(sale.id),
                "amount": "100.00",
                "method": "CASH",
                "payment_type": "DEPOSIT",
            },
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestVoidPaymentEndpoint:
    def test_void(self, test_client, store, act_as, add_sale, add_payment) -> None:
        sale = add_sale(SaleStatus.CONTRACTED)
        payment = add_payment(sale, Decimal("30000.00"))
        act_as(UserRole.ACCOUNTANT)

        response = test_client.post(
            f"{PAYMENTS}/{payment.id}/void",
            json={"reason": "cheque bounced"},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["payment"]["status"] == "VOIDED"
        assert data["payment"]["void_reason"] == "cheque bounced"
        assert Decimal(data["sale_paid_amount"]) == Decimal("0.00")
        assert store.payments[payment.id].status == PaymentStatus.VOIDED

    def test_void_completed_sale_needs_override(self, test_client, act_as, add_sale, add_payment) -> None:
        sale = add_sale(SaleStatus.COMPLETED)
        payment = add_payment(sale, Decimal("500000.00"))
        act_as(UserRole.ACCOUNTANT)

        response = test_client.post(
            f"{PAYMENTS}/{payment.id}/void",
            json={"reason": "refund"},
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "GUARD_FAILED"

    def test_void_completed_sale_with_override(self, test_client, store, add_sale, add_payment) -> None:
        sale = add_sale(SaleStatus.COMPLETED)
        payment = add_payment(sale, Decimal("500000.00"))

        response = test_client.post(
            f"{PAYMENTS}/{payment.id}/void",
            json={"reason": "refund", "override": True},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["sale_status"] == "COMPLETED"
        assert data["alerts"][0]["code"] == "SALE_UNDERPAID"
        assert store.sales[sale.id].status == SaleStatus.COMPLETED

    def test_void_twice(self, test_client, add_sale, add_payment) -> None:
        sale = add_sale(SaleStatus.RESERVED)
        payment = add_payment(sale, Decimal("100.00"), status=PaymentStatus.VOIDED)

        response = test_client.post(
            f"{PAYMENTS}/{payment.id}/void",
            json={"reason": "again"},
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "ILLEGAL_TRANSITION"

    def test_blank_reason_rejected(self, test_client) -> None:
        response = test_client.post(
            f"{PAYMENTS}/{uuid.uuid4()}/void",
            json={"reason": "   "},
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestLedgerEndpoint:
    def test_ledger(self, test_client, act_as, add_sale, add_payment) -> None:
        sale = add_sale(SaleStatus.CONTRACTED)
        add_payment(sale, Decimal("200000.00"))
        add_payment(sale, Decimal("1500.00"), PaymentType.OTHER_EXPENSE)
        add_payment(sale, Decimal("999.00"), status=PaymentStatus.VOIDED)
        act_as(UserRole.STOCK_STAFF)

        response = test_client.get(f"{PAYMENTS}/sales/{sale.id}/ledger")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert Decimal(data["active_sum"]) == Decimal("200000.00")
        assert data["active_count"] == 1
        assert Decimal(data["outstanding"]) == Decimal("300000.00")
        assert data["is_fully_paid"] is False
        assert len(data["payments"]) == 3

    def test_ledger_unknown_sale(self, test_client) -> None:
        response = test_client.get(f"{PAYMENTS}/sales/{uuid.uuid4()}/ledger")

        assert response.status_code == status.HTTP_404_NOT_FOUND
