import logging

from rest_framework import permissions, status
from rest_framework.decorators import action
from rest_framework.views import APIView

from core_backend.base import BaseViewSet
from core_backend.exceptions import ValidationError
from core_backend.responses import success_response
from restaurants.services import RestaurantService
from staff.permissions import IsManagerOrHigher
from .models import MenuCategory, MenuItem, Modifier, ModifierGroup, ModifierTemplate
from .modifier_services import (
    ModifierGroupService,
    ModifierResolutionService,
    ModifierService,
    ModifierTemplateService,
)
from .serializers import (
    BulkActiveSerializer,
    CategoryWithItemsSerializer,
    MenuCategorySerializer,
    MenuCategoryWriteSerializer,
    MenuItemAvailabilitySerializer,
    MenuItemModifierGroupSerializer,
    MenuItemModifierOptionSerializer,
    MenuItemSerializer,
    MenuItemWriteSerializer,
    ModifierGroupBulkUpdateSerializer,
    ModifierGroupSerializer,
    ModifierGroupWriteSerializer,
    ModifierOptionSerializer,
    ModifierOptionWriteSerializer,
    ModifierSerializer,
    ModifierTemplateSerializer,
    ModifierTemplateWriteSerializer,
    ModifierWriteSerializer,
    OptionOverrideWriteSerializer,
    ReorderSerializer,
    TemplateAssignmentSerializer,
    TemplateAssignmentUpdateSerializer,
)
from .services import MenuCategoryService, MenuItemService, MenuService

logger = logging.getLogger(__name__)


def _parse_bool(value):
    if value is None or value == "":
        return None
    return str(value).lower() in ("1", "true", "yes")


class ManagerWriteViewSet(BaseViewSet):
    """
    Reads are open to any staff member of the restaurant; writes need MANAGER+.
    """

    read_actions = ("list", "retrieve")

    def get_permissions(self):
        if self.action in self.read_actions:
            permission_classes = [permissions.IsAuthenticated]
        else:
            permission_classes = [permissions.IsAuthenticated, IsManagerOrHigher]
        return [permission() for permission in permission_classes]

    def _validated(self, serializer_class, partial=False):
        serializer = serializer_class(data=self.request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        if partial and not serializer.validated_data:
            raise ValidationError("At least one field must be provided for update")
        return serializer.validated_data

    def partial_update(self, request, *args, **kwargs):
        return self.update(request, *args, **kwargs)


class MenuCategoryViewSet(ManagerWriteViewSet):
    queryset = MenuCategory.objects.all()
    serializer_class = MenuCategorySerializer
    search_fields = ["name", "description"]
    ordering_fields = ["display_order", "name", "created_at"]
    ordering = ["display_order", "name"]

    def get_queryset(self):
        return MenuCategoryService.annotate_item_counts(super().get_queryset())

    def retrieve(self, request, *args, **kwargs):
        category = MenuCategoryService.get_category_with_items(kwargs["pk"])
        return success_response(CategoryWithItemsSerializer(category).data)

    def create(self, request, *args, **kwargs):
        category = MenuCategoryService.create_category(
            RestaurantService.require_current_restaurant(), self._validated(MenuCategoryWriteSerializer)
        )
        return success_response(
            MenuCategorySerializer(category).data,
            message="Category created successfully",
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        category = self.get_object()
        category = MenuCategoryService.update_category(
            category, self._validated(MenuCategoryWriteSerializer, partial=True)
        )
        return success_response(MenuCategorySerializer(category).data, message="Category updated successfully")

    def destroy(self, request, *args, **kwargs):
        MenuCategoryService.delete_category(self.get_object(), staff=request.user)
        return success_response(None, message="Category deleted successfully")

    @action(detail=False, methods=["post"], url_path="reorder")
    def reorder(self, request):
        serializer = ReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        categories = MenuCategoryService.reorder(serializer.validated_data["items"])
        return success_response(
            MenuCategorySerializer(categories, many=True).data, message="Categories reordered"
        )

    @action(detail=False, methods=["patch"], url_path="bulk-update")
    def bulk_update(self, request):
        serializer = BulkActiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = MenuCategoryService.bulk_set_active(
            serializer.validated_data["ids"], serializer.validated_data["is_active"]
        )
        return success_response({"updated_count": updated}, message=f"{updated} categories updated")


class MenuItemViewSet(ManagerWriteViewSet):
    """
    Menu items of the current restaurant.

    Any staff member may toggle availability so the kitchen can take a dish
    off the menu when it runs out.
    """

    queryset = MenuItem.objects.all()
    serializer_class = MenuItemSerializer
    filterset_fields = ["category", "is_available"]
    search_fields = ["name"]
    ordering_fields = ["display_order", "name", "price", "created_at"]
    ordering = ["display_order", "name"]
    read_actions = ("list", "retrieve", "availability", "templates", "resolved_modifiers")

    def get_permissions(self):
        if self.action == "templates" and self.request.method != "GET":
            return [permissions.IsAuthenticated(), IsManagerOrHigher()]
        return super().get_permissions()

    def create(self, request, *args, **kwargs):
        item = MenuItemService.create_item(
            RestaurantService.require_current_restaurant(), self._validated(MenuItemWriteSerializer)
        )
        return success_response(
            MenuItemSerializer(item).data,
            message="Menu item created successfully",
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        item = self.get_object()
        item = MenuItemService.update_item(item, self._validated(MenuItemWriteSerializer, partial=True))
        return success_response(MenuItemSerializer(item).data, message="Menu item updated successfully")

    def destroy(self, request, *args, **kwargs):
        MenuItemService.delete_item(self.get_object(), staff=request.user)
        return success_response(None, message="Menu item deleted successfully")

    @action(detail=True, methods=["patch"], url_path="availability")
    def availability(self, request, pk=None):
        item = self.get_object()
        serializer = MenuItemAvailabilitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = MenuItemService.update_availability(
            item,
            serializer.validated_data["is_available"],
            request.user,
            note=serializer.validated_data.get("note"),
        )
        return success_response(MenuItemSerializer(item).data, message="Availability updated")

    @action(detail=True, methods=["get", "post"], url_path="templates")
    def templates(self, request, pk=None):
        item = self.get_object()
        if request.method == "GET":
            assignments = ModifierTemplateService.list_assignments(item)
            return success_response(MenuItemModifierGroupSerializer(assignments, many=True).data)

        assignment = ModifierTemplateService.assign_to_menu_item(
            item, self._validated(TemplateAssignmentSerializer)
        )
        return success_response(
            MenuItemModifierGroupSerializer(assignment).data,
            message="Template assigned to menu item",
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["patch", "delete"], url_path=r"templates/(?P<template_id>[^/.]+)")
    def template_assignment(self, request, pk=None, template_id=None):
        item = self.get_object()
        if request.method == "DELETE":
            ModifierTemplateService.unassign(item, template_id)
            return success_response(None, message="Template unassigned from menu item")

        assignment = ModifierTemplateService.update_assignment(
            item, template_id, self._validated(TemplateAssignmentUpdateSerializer, partial=True)
        )
        return success_response(MenuItemModifierGroupSerializer(assignment).data, message="Assignment updated")

    @action(
        detail=True,
        methods=["put", "delete"],
        url_path=r"templates/(?P<template_id>[^/.]+)/options/(?P<option_id>[^/.]+)",
    )
    def option_override(self, request, pk=None, template_id=None, option_id=None):
        item = self.get_object()
        if request.method == "DELETE":
            ModifierTemplateService.remove_override(item, template_id, option_id)
            return success_response(None, message="Override removed")

        serializer = OptionOverrideWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        override = ModifierTemplateService.upsert_override(
            item, template_id, option_id, serializer.validated_data
        )
        return success_response(MenuItemModifierOptionSerializer(override).data, message="Override saved")

    @action(detail=True, methods=["get"], url_path="modifiers/resolved")
    def resolved_modifiers(self, request, pk=None):
        item = self.get_object()
        return success_response(
            {
                "modifier_groups": ModifierResolutionService.resolve_for_menu_item(item),
                "legacy_modifier_groups": ModifierResolutionService.legacy_groups_for_menu_item(item),
            }
        )


class ModifierGroupViewSet(ManagerWriteViewSet):
    queryset = ModifierGroup.objects.all()
    serializer_class = ModifierGroupSerializer
    ordering = ["display_order", "name"]
    read_actions = ("list", "retrieve", "statistics")

    def get_queryset(self):
        return ModifierGroupService.list_groups(self.request.query_params.get("menu_item"))

    def create(self, request, *args, **kwargs):
        group = ModifierGroupService.create_group(self._validated(ModifierGroupWriteSerializer))
        return success_response(
            ModifierGroupSerializer(ModifierGroupService.get_group(group.pk)).data,
            message="Modifier group created successfully",
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        group = self.get_object()
        data = self._validated(ModifierGroupWriteSerializer, partial=True)
        data.pop("menu_item", None)
        group = ModifierGroupService.update_group(group, data)
        return success_response(
            ModifierGroupSerializer(ModifierGroupService.get_group(group.pk)).data,
            message="Modifier group updated successfully",
        )

    def destroy(self, request, *args, **kwargs):
        ModifierGroupService.delete_group(self.get_object(), staff=request.user)
        return success_response(None, message="Modifier group deleted successfully")

    @action(detail=False, methods=["post"], url_path="reorder")
    def reorder(self, request):
        serializer = ReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        groups = ModifierGroupService.reorder(serializer.validated_data["items"])
        return success_response(ModifierGroupSerializer(groups, many=True).data, message="Modifier groups reordered")

    @action(detail=False, methods=["patch"], url_path="bulk-update")
    def bulk_update(self, request):
        serializer = ModifierGroupBulkUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        updated = ModifierGroupService.bulk_update(data.pop("ids"), data)
        return success_response({"updated_count": updated}, message=f"{updated} modifier groups updated")

    @action(detail=False, methods=["get"], url_path="statistics")
    def statistics(self, request):
        menu_item_id = request.query_params.get("menu_item")
        if not menu_item_id:
            raise ValidationError("menu_item query parameter is required")
        return success_response(ModifierGroupService.statistics(menu_item_id))


class ModifierViewSet(ManagerWriteViewSet):
    queryset = Modifier.objects.all()
    serializer_class = ModifierSerializer
    ordering = ["display_order", "name"]

    def get_queryset(self):
        return ModifierService.list_modifiers(self.request.query_params.get("group"))

    def create(self, request, *args, **kwargs):
        modifier = ModifierService.create_modifier(self._validated(ModifierWriteSerializer))
        return success_response(
            ModifierSerializer(modifier).data,
            message="Modifier created successfully",
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        modifier = self.get_object()
        data = self._validated(ModifierWriteSerializer, partial=True)
        data.pop("group", None)
        modifier = ModifierService.update_modifier(modifier, data)
        return success_response(ModifierSerializer(modifier).data, message="Modifier updated successfully")

    def destroy(self, request, *args, **kwargs):
        ModifierService.delete_modifier(self.get_object(), staff=request.user)
        return success_response(None, message="Modifier deleted successfully")


class ModifierTemplateViewSet(ManagerWriteViewSet):
    queryset = ModifierTemplate.objects.all()
    serializer_class = ModifierTemplateSerializer
    ordering = ["name"]

    def get_queryset(self):
        return ModifierTemplateService.list_templates(
            search=self.request.query_params.get("search"),
            is_active=_parse_bool(self.request.query_params.get("is_active")),
        )

    def create(self, request, *args, **kwargs):
        template = ModifierTemplateService.create_template(
            RestaurantService.require_current_restaurant(),
            self._validated(ModifierTemplateWriteSerializer),
        )
        return success_response(
            ModifierTemplateSerializer(template).data,
            message="Modifier template created successfully",
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        template = self.get_object()
        data = self._validated(ModifierTemplateWriteSerializer, partial=True)
        data.pop("options", None)
        template = ModifierTemplateService.update_template(template, data)
        return success_response(
            ModifierTemplateSerializer(template).data, message="Modifier template updated successfully"
        )

    def destroy(self, request, *args, **kwargs):
        ModifierTemplateService.delete_template(self.get_object(), staff=request.user)
        return success_response(None, message="Modifier template deleted successfully")

    @action(detail=True, methods=["post"], url_path="options")
    def add_option(self, request, pk=None):
        template = self.get_object()
        option = ModifierTemplateService.add_option(template, self._validated(ModifierOptionWriteSerializer))
        return success_response(
            ModifierOptionSerializer(option).data,
            message="Option added",
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["patch", "delete"], url_path=r"options/(?P<option_id>[^/.]+)")
    def option_detail(self, request, pk=None, option_id=None):
        template = self.get_object()
        if request.method == "DELETE":
            ModifierTemplateService.delete_option(template, option_id, staff=request.user)
            return success_response(None, message="Option deleted")

        option = ModifierTemplateService.update_option(
            template, option_id, self._validated(ModifierOptionWriteSerializer, partial=True)
        )
        return success_response(ModifierOptionSerializer(option).data, message="Option updated")


class FullMenuView(APIView):
    """Active categories of the current restaurant with all of their active items."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        categories = MenuService.get_full_menu()
        return success_response(CategoryWithItemsSerializer(categories, many=True).data)
