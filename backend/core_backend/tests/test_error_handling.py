"""
Global Error Handling & Shared Infrastructure Tests

This module tests concerns that span every app:

1. Service errors rendered through the DRF exception handler
2. Actor resolution at the service boundary
3. Soft delete managers

Run with: pytest backend/core_backend/tests/test_error_handling.py -v
"""
import pytest
import uuid
from rest_framework import status
from rest_framework.exceptions import PermissionDenied

from core_backend.actors import Actor, ActorRef, resolve_actor
from core_backend.exceptions import (
    ActiveShiftExists,
    FoodUnavailable,
    NoActiveShift,
    NotFound,
    ValidationFailed,
    service_exception_handler,
)
from orders.models import Order, OrderItem
from orders.services import OrderItemService


# ============================================================================
# EXCEPTION HANDLER TESTS
# ============================================================================

class TestServiceExceptionHandler:
    """Service errors surface as {'success': False, 'error': {...}}"""

    def test_validation_error(self):
        response = service_exception_handler(ValidationFailed("Quantity must be at least 1", field="quantity"), {})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data == {
            'success': False,
            'error': {
                'code': 'VALIDATION_ERROR',
                'message': 'Quantity must be at least 1',
                'field': 'quantity',
            },
        }

    def test_not_found(self):
        response = service_exception_handler(NotFound("Order item", "42"), {})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['error']['code'] == 'NOT_FOUND'
        assert response.data['error']['message'] == "Order item '42' not found"

    def test_no_active_shift(self):
        response = service_exception_handler(NoActiveShift(), {})

        assert response.data['error']['code'] == 'NO_ACTIVE_SHIFT'

    def test_food_unavailable_lists_foods(self):
        foods = [{'foodId': 'f-1', 'name': 'Plov', 'reason': 'stop_list'}]

        response = service_exception_handler(FoodUnavailable(foods), {})

        assert response.data['error']['foods'] == foods
        assert 'Plov' in response.data['error']['message']

    def test_active_shift_exists_without_shift(self):
        error = ActiveShiftExists()

        assert error.as_dict() == {'code': 'ACTIVE_SHIFT_EXISTS', 'message': error.message}

    def test_other_exceptions_use_drf_default(self):
        response = service_exception_handler(PermissionDenied(), {'view': None, 'request': None})

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert 'success' not in response.data

    def test_unknown_exceptions_are_not_handled(self):
        assert service_exception_handler(RuntimeError('boom'), {}) is None


# ============================================================================
# ACTOR RESOLUTION TESTS
# ============================================================================

class TestResolveActor:
    """Every service accepts an id, a dict, a staff member or an actor"""

    def test_bare_id(self):
        actor_id = uuid.uuid4()

        assert resolve_actor(actor_id) == ActorRef(id=actor_id)
        assert resolve_actor(str(actor_id)) == ActorRef(id=actor_id)

    def test_ref_has_no_role(self):
        ref = resolve_actor(uuid.uuid4())

        assert ref.role is None
        assert ref.display_name == ''
        assert ref.kind == 'ref'

    def test_dict_with_fields(self):
        actor_id, category_id = uuid.uuid4(), uuid.uuid4()

        actor = resolve_actor({
            'id': str(actor_id),
            'role': 'cook',
            'display_name': 'Rustam',
            'assigned_category_ids': [str(category_id)],
        })

        assert actor == Actor(id=actor_id, role='cook', display_name='Rustam',
                              assigned_category_ids=(category_id,))
        assert actor.is_cook

    def test_dict_with_id_only(self):
        actor_id = uuid.uuid4()

        assert isinstance(resolve_actor({'id': actor_id}), ActorRef)

    def test_dict_without_id(self):
        with pytest.raises(ValidationFailed) as excinfo:
            resolve_actor({'role': 'admin'})

        assert excinfo.value.field == 'actor'

    @pytest.mark.parametrize('value', ['not-a-uuid', {'id': '42', 'role': 'waiter'}, 17])
    def test_malformed_id(self, value):
        """Bad actor input is a 400, not a server error"""
        with pytest.raises(ValidationFailed) as excinfo:
            resolve_actor(value)

        response = service_exception_handler(excinfo.value, {})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error']['field'] == 'actor'

    def test_malformed_category_id(self):
        with pytest.raises(ValidationFailed) as excinfo:
            resolve_actor({'id': str(uuid.uuid4()), 'role': 'cook', 'assigned_category_ids': ['hot']})

        assert excinfo.value.field == 'assigned_category_ids'

    def test_none(self):
        assert resolve_actor(None) is None

    @pytest.mark.django_db
    def test_staff_member(self, hot_cook, hot_category):
        actor = resolve_actor(hot_cook)

        assert actor.id == hot_cook.id
        assert actor.role == 'cook'
        assert actor.display_name == 'Rustam'
        assert actor.assigned_category_ids == (hot_category.id,)


# ============================================================================
# SOFT DELETE TESTS
# ============================================================================

@pytest.mark.django_db
class TestSoftDelete:
    """Deleted rows stay in the table for audit"""

    def test_removed_item_hidden_but_kept(self, dine_in_order, plov):
        item = dine_in_order.items.get(food=plov)

        OrderItemService.remove_item(dine_in_order, item.id)

        assert not OrderItem.objects.filter(pk=item.pk).exists()
        deleted = OrderItem.all_objects.get(pk=item.pk)
        assert deleted.is_deleted is True
        assert deleted.deleted_at is not None

    def test_delete_is_soft(self, dine_in_order):
        dine_in_order.delete()

        assert not Order.objects.filter(pk=dine_in_order.pk).exists()
        assert Order.all_objects.filter(pk=dine_in_order.pk).exists()

    def test_restore(self, dine_in_order):
        dine_in_order.soft_delete()
        dine_in_order.restore()

        assert Order.objects.filter(pk=dine_in_order.pk).exists()

    def test_queryset_helpers(self, dine_in_order):
        OrderItem.objects.filter(order=dine_in_order).soft_delete()

        assert OrderItem.all_objects.filter(order=dine_in_order).deleted().count() == 2
        assert OrderItem.all_objects.filter(order=dine_in_order).alive().count() == 0
