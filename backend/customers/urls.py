from django.urls import path

from . import views

urlpatterns = [
    path("sessions/", views.SessionCreateView.as_view(), name="customer-session-create"),
    path("sessions/current/", views.CurrentSessionView.as_view(), name="customer-session-current"),
    path("sessions/current/extend/", views.SessionExtendView.as_view(), name="customer-session-extend"),
    path("sessions/current/orders/", views.SessionOrdersView.as_view(), name="customer-session-orders"),
    path("tables/<str:code>/validate/", views.TableValidateView.as_view(), name="customer-table-validate"),
    path("tables/<str:code>/orders/", views.TableOrdersView.as_view(), name="customer-table-orders"),
    path("menu/<str:code>/", views.CustomerMenuView.as_view(), name="customer-menu"),
    path("orders/", views.CustomerOrderCreateView.as_view(), name="customer-order-create"),
    path("orders/track/<str:order_number>/", views.OrderTrackView.as_view(), name="customer-order-track"),
    path("orders/<uuid:order_id>/", views.CustomerOrderDetailView.as_view(), name="customer-order-detail"),
    path("assistance/", views.AssistanceRequestView.as_view(), name="customer-assistance"),
]
