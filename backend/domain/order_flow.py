"""
Order lifecycle transition map.

    pending → accepted → assigned → picked_up → in_transit → delivered
        ↘ cancelled   ↘ cancelled

Every status change made by vendors, drivers and admin `update_status`
interventions is checked against ALLOWED_TRANSITIONS.
"""
from domain.enums import OrderStatus, UserRole


class OrderFlow:
    ALLOWED_TRANSITIONS = {
        OrderStatus.PENDING: [OrderStatus.ACCEPTED, OrderStatus.CANCELLED],
        OrderStatus.ACCEPTED: [OrderStatus.ASSIGNED, OrderStatus.CANCELLED],
        OrderStatus.ASSIGNED: [OrderStatus.PICKED_UP, OrderStatus.ACCEPTED],
        OrderStatus.PICKED_UP: [OrderStatus.IN_TRANSIT],
        OrderStatus.IN_TRANSIT: [OrderStatus.DELIVERED],
        OrderStatus.DELIVERED: [],
        OrderStatus.CANCELLED: [],
    }

    # Statuses each actor may move an order into
    ACTOR_TARGETS = {
        UserRole.VENDOR: {
            OrderStatus.ACCEPTED, OrderStatus.ASSIGNED, OrderStatus.PICKED_UP,
            OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED, OrderStatus.CANCELLED,
        },
        UserRole.DRIVER: {OrderStatus.PICKED_UP, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED},
        UserRole.ADMIN: set(OrderStatus),
        UserRole.CUSTOMER: {OrderStatus.CANCELLED},
    }

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = OrderStatus(current_status)
            new = OrderStatus(new_status)
            return new in OrderFlow.ALLOWED_TRANSITIONS.get(curr, [])
        except ValueError:
            return False

    @staticmethod
    def actor_may_set(role: str, new_status: str) -> bool:
        try:
            return OrderStatus(new_status) in OrderFlow.ACTOR_TARGETS.get(UserRole(role), set())
        except ValueError:
            return False

    @staticmethod
    def next_statuses(current_status: str) -> list[str]:
        try:
            return [s.value for s in OrderFlow.ALLOWED_TRANSITIONS[OrderStatus(current_status)]]
        except (KeyError, ValueError):
            return []

    @staticmethod
    def is_terminal(status: str) -> bool:
        return status in (OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value)
