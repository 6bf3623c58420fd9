"""
Tests for notification templates.

These tests verify what each order status notification says, and the
builders for the storefront's other notifications.
"""

import pytest

from session.models import NotificationType, OrderStatus, StatusObservation
from commerce.templates import (
    ORDER_STATUS_TEMPLATES,
    account_update_notification,
    design_ready_notification,
    get_notification_icon,
    get_status_template,
    order_reference,
    render_order_status,
    welcome_notification,
)


def _observe(status: str, **kwargs) -> StatusObservation:
    return StatusObservation(order_id="ORD-2024-001234", status=status, **kwargs)


class TestOrderStatusTemplates:
    """Tests for rendering order status notifications."""

    def test_every_status_has_a_template(self):
        """Test that all lifecycle states are covered."""
        for status in OrderStatus:
            assert status.value in ORDER_STATUS_TEMPLATES

    def test_order_reference(self):
        """Test the short '#' reference."""
        assert order_reference("ORD-2024-001234") == "#001234"
        assert order_reference("O1") == "#O1"

    def test_completed(self):
        """Test the stitching completed notification."""
        draft = render_order_status(_observe("completed", estimated_delivery="Dec 28"))

        assert draft.type == NotificationType.ORDER_STITCHING_COMPLETED.value
        assert draft.title == "Stitching Completed"
        assert "#001234" in draft.message
        assert "Estimated delivery: Dec 28." in draft.message
        assert draft.link_to == "/orders/ORD-2024-001234"

    def test_assigned_with_tailor(self):
        """Test that the tailor's name appears when known."""
        draft = render_order_status(_observe("assigned", assigned_tailor="Meera Iyer"))
        assert "Meera Iyer" in draft.message

    def test_assigned_without_tailor(self):
        """Test the fallback tailor wording."""
        draft = render_order_status(_observe("assigned"))
        assert "our tailor" in draft.message

    def test_shipped_with_tracking(self):
        """Test that tracking details are appended when present."""
        draft = render_order_status(_observe("shipped", tracking_number="DT001234"))

        assert draft.title == "Out for Delivery"
        assert "Tracking: DT001234." in draft.message
        assert draft.icon == "🚚"

    def test_in_progress_uses_scissors(self):
        """Test the in-progress override icon."""
        draft = render_order_status(_observe("in_progress"))

        assert draft.title == "Stitching in Progress"
        assert draft.icon == "✂️"

    @pytest.mark.parametrize("alias,title", [
        ("stitching_completed", "Stitching Completed"),
        ("out_for_delivery", "Out for Delivery"),
    ])
    def test_aliases(self, alias, title):
        """Test that alternate spellings use the same template."""
        assert get_status_template(alias).title == title
        assert render_order_status(_observe(alias)).title == title

    def test_unknown_status_is_system_notification(self):
        """Test the generic fallback for statuses without a template."""
        draft = render_order_status(_observe("on_hold"))

        assert draft.type == NotificationType.SYSTEM.value
        assert draft.title == "Order #001234"
        assert draft.message == "Your order status has been updated to: on hold"


class TestOtherBuilders:
    """Tests for the non-order notification builders."""

    def test_icons(self):
        assert get_notification_icon("design_ready") == "🎨"
        assert get_notification_icon("something_new") == "🔔"

    def test_design_ready(self):
        draft = design_ready_notification("Festive Lehenga")

        assert '"Festive Lehenga"' in draft.message
        assert draft.link_to == "/ai-studio"

    def test_account_update_fallback(self):
        """Test that unknown update types use the profile message."""
        assert account_update_notification("password").message.startswith("Your password")
        assert account_update_notification("unknown") == account_update_notification("profile")

    def test_welcome(self):
        assert "Asha" in welcome_notification("Asha").message
