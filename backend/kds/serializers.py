from rest_framework import serializers

from orders.models import Order, OrderItem


class KitchenItemSerializer(serializers.Serializer):
    """
    One line on a kitchen ticket.

    ``originalIndex`` is the line's position on the unfiltered order so a
    cook's narrowed view still addresses the right line.
    """

    id = serializers.UUIDField()
    foodId = serializers.UUIDField(source="food_id", allow_null=True)
    name = serializers.SerializerMethodField()
    categoryId = serializers.SerializerMethodField()
    quantity = serializers.IntegerField()
    readyQuantity = serializers.IntegerField(source="ready_quantity")
    status = serializers.CharField()
    kitchenStatus = serializers.CharField(source="status")
    notes = serializers.CharField()
    isStarted = serializers.BooleanField(source="is_started")
    startedAt = serializers.DateTimeField(source="started_at", allow_null=True)
    readyAt = serializers.DateTimeField(source="ready_at", allow_null=True)
    addedAt = serializers.DateTimeField(source="added_at")
    addedByName = serializers.CharField(source="added_by_name")
    originalIndex = serializers.IntegerField(source="position")

    def get_name(self, obj: OrderItem):
        # Renamed menu items show their current name in the kitchen
        if obj.food_id and obj.food is not None:
            return obj.food.name
        return obj.food_name

    def get_categoryId(self, obj: OrderItem):
        category_id = kitchen_category_id(obj)
        return str(category_id) if category_id else None


class KitchenOrderSerializer(serializers.Serializer):
    """
    A kitchen ticket. The visible items are passed in the context under
    ``items`` because cooks only see their own categories.
    """

    orderId = serializers.UUIDField(source="id")
    orderNumber = serializers.IntegerField(source="order_number")
    orderType = serializers.CharField(source="order_type")
    saboyNumber = serializers.IntegerField(source="saboy_number", allow_null=True)
    tableId = serializers.UUIDField(source="table_id", allow_null=True)
    tableName = serializers.CharField(source="table_display_name")
    tableNumber = serializers.SerializerMethodField()
    waiterId = serializers.UUIDField(source="waiter_id", allow_null=True)
    waiterId = serializers.UUIDField(source="waiter_id", allow_null=True)
    waiterName = serializers.CharField(source="waiter_name")
    items = serializers.SerializerMethodField()
    status = serializers.CharField()
    comment = serializers.CharField()
    allItemsReady = serializers.BooleanField(source="all_items_ready")
    createdAt = serializers.DateTimeField(source="created_at")
    restaurantId = serializers.UUIDField(source="restaurant_id")

    def get_tableNumber(self, obj: Order):
        if obj.table_id:
            return obj.table.table_number
        return None

    def get_items(self, obj: Order):
        items = self.context.get("items")
        if items is None:
            items = list(obj.items.all())
        return KitchenItemSerializer(items, many=True).data


class OrderEventSerializer(serializers.Serializer):
    """Compact order summary broadcast to the whole restaurant."""

    orderId = serializers.UUIDField(source="id")
    orderNumber = serializers.IntegerField(source="order_number")
    orderType = serializers.CharField(source="order_type")
    status = serializers.CharField()
    tableId = serializers.UUIDField(source="table_id", allow_null=True)
    tableName = serializers.CharField(source="table_display_name")
    shiftId = serializers.UUIDField(source="shift_id", allow_null=True)
    waiterId = serializers.UUIDField(source="waiter_id", allow_null=True)
    waiterName = serializers.CharField(source="waiter_name")
    grandTotal = serializers.DecimalField(source="grand_total", max_digits=14, decimal_places=2)
    isPaid = serializers.BooleanField(source="is_paid")
    paymentType = serializers.CharField(source="payment_type", allow_null=True)
    updatedAt = serializers.DateTimeField(source="updated_at")


class ShiftEventSerializer(serializers.Serializer):
    shiftId = serializers.UUIDField(source="id")
    shiftNumber = serializers.IntegerField(source="shift_number")
    status = serializers.CharField()
    openedAt = serializers.DateTimeField(source="opened_at")
    openedByName = serializers.CharField(source="opened_by_name")
    closedAt = serializers.DateTimeField(source="closed_at", allow_null=True)
    closedByName = serializers.CharField(source="closed_by_name")
    totalOrders = serializers.IntegerField(source="total_orders")
    paidOrders = serializers.IntegerField(source="paid_orders")
    totalRevenue = serializers.DecimalField(source="total_revenue", max_digits=14, decimal_places=2)
    cashDifference = serializers.DecimalField(
        source="cash_difference", max_digits=14, decimal_places=2, allow_null=True
    )


class TableEventSerializer(serializers.Serializer):
    tableId = serializers.UUIDField(source="id")
    title = serializers.CharField()
    tableNumber = serializers.IntegerField(source="table_number", allow_null=True)
    status = serializers.CharField()
    activeOrderId = serializers.UUIDField(source="active_order_id", allow_null=True)


def kitchen_category_id(item: OrderItem):
    """The live food's category, falling back to the snapshot taken at order time."""
    if item.food_id and item.food is not None and item.food.category_id:
        return item.food.category_id
    return item.category_id
