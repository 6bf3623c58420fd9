"""
Notification templates.

This module decides what a notification says: the title, message and icon
for each order status, plus builders for the account, design and promotion
notifications the storefront raises.

Design decisions:
- Templates are plain strings with {variable} placeholders
- Order templates are keyed by normalized status string, with aliases
  ("stitching_completed", "out_for_delivery") pointing at the same template
- Optional details (tailor name, tracking number, estimated delivery) are
  appended as extra sentences only when the feed supplied them
- Unknown statuses fall back to a generic "status updated" system notification
- Every order notification links to the order page, "/orders/<orderId>"
"""

from dataclasses import dataclass
from typing import Optional

from session.models import NotificationDraft, NotificationType, OrderStatus, StatusObservation


NOTIFICATION_ICONS: dict[NotificationType, str] = {
    NotificationType.ORDER_PLACED: "📋",
    NotificationType.ORDER_CONFIRMED: "✅",
    NotificationType.ORDER_ASSIGNED: "👨‍🎨",
    NotificationType.ORDER_STITCHING_COMPLETED: "👕",
    NotificationType.ORDER_PACKED: "📦",
    NotificationType.ORDER_SHIPPED: "🚚",
    NotificationType.ORDER_DELIVERED: "🎉",
    NotificationType.MEASUREMENT_SAVED: "📏",
    NotificationType.DESIGN_READY: "🎨",
    NotificationType.ACCOUNT_UPDATE: "👤",
    NotificationType.PROMOTION: "🎉",
    NotificationType.SYSTEM: "🔔",
}

DEFAULT_TAILOR_NAME = "our tailor"


def get_notification_icon(notification_type: str) -> str:
    """Icon for a notification type; unknown types get the system bell."""
    try:
        return NOTIFICATION_ICONS[NotificationType(notification_type)]
    except ValueError:
        return NOTIFICATION_ICONS[NotificationType.SYSTEM]


def order_reference(order_id: str) -> str:
    """Short, human-friendly order reference: '#' plus the last 6 characters."""
    return f"#{order_id[-6:]}"


def order_link(order_id: str) -> str:
    return f"/orders/{order_id}"


# =============================================================================
# Order status templates
# =============================================================================

@dataclass(frozen=True)
class OrderStatusTemplate:
    """
    How one order status is announced.

    `message` receives {order_ref}; the detail templates are only rendered
    when the matching observation field is present.
    """
    status: OrderStatus
    notification_type: NotificationType
    title: str
    message: str
    icon: Optional[str] = None
    tailor_detail: Optional[str] = None
    tracking_detail: Optional[str] = None
    delivery_detail: Optional[str] = None

    def render(self, observation: StatusObservation) -> NotificationDraft:
        message = self.message.format(
            order_ref=order_reference(observation.order_id),
            tailor_name=observation.assigned_tailor or DEFAULT_TAILOR_NAME,
        )
        if self.tracking_detail and observation.tracking_number:
            message += " " + self.tracking_detail.format(tracking_number=observation.tracking_number)
        if self.delivery_detail and observation.estimated_delivery:
            message += " " + self.delivery_detail.format(
                estimated_delivery=observation.estimated_delivery
            )
        return NotificationDraft(
            type=self.notification_type,
            title=self.title,
            message=message,
            icon=self.icon or get_notification_icon(self.notification_type),
            link_to=order_link(observation.order_id),
        )


ORDER_STATUS_TEMPLATES: dict[str, OrderStatusTemplate] = {
    OrderStatus.PLACED.value: OrderStatusTemplate(
        status=OrderStatus.PLACED,
        notification_type=NotificationType.ORDER_PLACED,
        title="Order Placed",
        message="Your order {order_ref} has been placed successfully.",
    ),
    OrderStatus.CONFIRMED.value: OrderStatusTemplate(
        status=OrderStatus.CONFIRMED,
        notification_type=NotificationType.ORDER_CONFIRMED,
        title="Order Confirmed",
        message="Your order {order_ref} has been confirmed and is being processed.",
    ),
    OrderStatus.ASSIGNED.value: OrderStatusTemplate(
        status=OrderStatus.ASSIGNED,
        notification_type=NotificationType.ORDER_ASSIGNED,
        title="Assigned to Tailor",
        message="Your order {order_ref} has been assigned to {tailor_name}.",
    ),
    OrderStatus.IN_PROGRESS.value: OrderStatusTemplate(
        status=OrderStatus.IN_PROGRESS,
        notification_type=NotificationType.SYSTEM,
        title="Stitching in Progress",
        message="Stitching has started on your order {order_ref}.",
        icon="✂️",
    ),
    OrderStatus.COMPLETED.value: OrderStatusTemplate(
        status=OrderStatus.COMPLETED,
        notification_type=NotificationType.ORDER_STITCHING_COMPLETED,
        title="Stitching Completed",
        message="The stitching for your order {order_ref} is completed.",
        delivery_detail="Estimated delivery: {estimated_delivery}.",
    ),
    OrderStatus.PACKED.value: OrderStatusTemplate(
        status=OrderStatus.PACKED,
        notification_type=NotificationType.ORDER_PACKED,
        title="Order Packed",
        message="Your order {order_ref} has been packed.",
        tracking_detail="Tracking: {tracking_number}.",
    ),
    OrderStatus.SHIPPED.value: OrderStatusTemplate(
        status=OrderStatus.SHIPPED,
        notification_type=NotificationType.ORDER_SHIPPED,
        title="Out for Delivery",
        message="Your order {order_ref} is out for delivery.",
        tracking_detail="Tracking: {tracking_number}.",
        delivery_detail="Expected arrival: {estimated_delivery}.",
    ),
    OrderStatus.DELIVERED.value: OrderStatusTemplate(
        status=OrderStatus.DELIVERED,
        notification_type=NotificationType.ORDER_DELIVERED,
        title="Order Delivered",
        message="Your order {order_ref} has been delivered. We hope you love it!",
    ),
}

# Status spellings some backends use for the same step
STATUS_ALIASES: dict[str, str] = {
    "stitching_completed": OrderStatus.COMPLETED.value,
    "out_for_delivery": OrderStatus.SHIPPED.value,
}


def get_status_template(status: str) -> Optional[OrderStatusTemplate]:
    """Template for a normalized status string, following aliases."""
    return ORDER_STATUS_TEMPLATES.get(STATUS_ALIASES.get(status, status))


def render_order_status(observation: StatusObservation) -> NotificationDraft:
    """
    Build the notification announcing an observation's status.

    Statuses without a template become a generic system notification instead
    of an error.
    """
    template = get_status_template(observation.status)
    if template is not None:
        return template.render(observation)

    readable = observation.status.replace("_", " ")
    return NotificationDraft(
        type=NotificationType.SYSTEM,
        title=f"Order {order_reference(observation.order_id)}",
        message=f"Your order status has been updated to: {readable}",
        icon=get_notification_icon(NotificationType.SYSTEM),
        link_to=order_link(observation.order_id),
    )


# =============================================================================
# Other notification builders
# =============================================================================

ACCOUNT_UPDATE_MESSAGES = {
    "profile": "Your profile information has been updated successfully.",
    "password": "Your password has been changed successfully.",
    "email": "Your email address has been updated.",
    "preferences": "Your preferences have been saved.",
}


def system_notification(title: str, message: str, link_to: Optional[str] = None) -> NotificationDraft:
    return NotificationDraft(
        type=NotificationType.SYSTEM,
        title=title,
        message=message,
        icon=get_notification_icon(NotificationType.SYSTEM),
        link_to=link_to,
    )


def measurement_saved_notification() -> NotificationDraft:
    return NotificationDraft(
        type=NotificationType.MEASUREMENT_SAVED,
        title="Measurements Saved",
        message="Your body measurements have been saved successfully.",
        icon=get_notification_icon(NotificationType.MEASUREMENT_SAVED),
        link_to="/profile",
    )


def design_ready_notification(design_name: str) -> NotificationDraft:
    return NotificationDraft(
        type=NotificationType.DESIGN_READY,
        title="Design Ready",
        message=f'Your custom design "{design_name}" is ready for review!',
        icon=get_notification_icon(NotificationType.DESIGN_READY),
        link_to="/ai-studio",
    )


def account_update_notification(update_type: str = "profile") -> NotificationDraft:
    """Unknown update types fall back to the profile message."""
    return NotificationDraft(
        type=NotificationType.ACCOUNT_UPDATE,
        title="Account Updated",
        message=ACCOUNT_UPDATE_MESSAGES.get(update_type, ACCOUNT_UPDATE_MESSAGES["profile"]),
        icon=get_notification_icon(NotificationType.ACCOUNT_UPDATE),
        link_to="/profile",
    )


def promotion_notification(title: str, message: str, link_to: str = "/catalog") -> NotificationDraft:
    return NotificationDraft(
        type=NotificationType.PROMOTION,
        title=title,
        message=message,
        icon=get_notification_icon(NotificationType.PROMOTION),
        link_to=link_to,
    )


def welcome_notification(user_name: str) -> NotificationDraft:
    return system_notification(
        "Welcome to DigiTailor!",
        f"Hi {user_name}! Welcome to DigiTailor. Start by exploring our AI-powered "
        "design studio or browse our catalog.",
        link_to="/ai-studio",
    )
