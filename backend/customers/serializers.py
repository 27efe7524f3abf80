from rest_framework import serializers


class SessionCreateSerializer(serializers.Serializer):
    table_code = serializers.CharField(max_length=20)
    customer_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    customer_email = serializers.EmailField(required=False, allow_blank=True)


class CustomerSessionSerializer(serializers.Serializer):
    token = serializers.CharField()
    session_id = serializers.CharField()
    customer_name = serializers.CharField()
    expires_at = serializers.DateTimeField()
    table = serializers.SerializerMethodField()
    restaurant = serializers.SerializerMethodField()

    def get_table(self, obj):
        return {
            "id": str(obj.table_id),
            "number": obj.table.number,
            "code": obj.table.code,
            "status": obj.table.status,
        }

    def get_restaurant(self, obj):
        restaurant = obj.table.restaurant
        return {
            "id": str(restaurant.id),
            "name": restaurant.name,
            "currency": restaurant.currency,
        }


class TableValidationSerializer(serializers.Serializer):
    code = serializers.CharField()
    number = serializers.IntegerField()
    status = serializers.CharField()
    restaurant_id = serializers.UUIDField(source="restaurant.id")
    restaurant_name = serializers.CharField(source="restaurant.name")
