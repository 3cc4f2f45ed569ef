from django.urls import path
from .views import ticket_views

app_name = 'agents'

urlpatterns = [
    path('tickets', ticket_views.get_assigned_tickets, name='assigned_tickets'),
    path('tickets/<int:ticket_id>/status', ticket_views.update_ticket_status, name='update_ticket_status'),
    path('tickets/<int:ticket_id>/messages', ticket_views.ticket_messages, name='ticket_messages'),
]
