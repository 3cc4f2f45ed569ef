from django.urls import path
from .views import auth_views, ticket_views


app_name = 'users'

urlpatterns = [
    path('auth/register', auth_views.register, name='register'),
    path('auth/login', auth_views.login, name='login'),
    path('auth/logout', auth_views.logout, name='logout'),
    path('auth/validate-token', auth_views.validate_token, name='validate_token'),

    path('tickets', ticket_views.get_my_tickets, name='my_tickets'),
    path('tickets/create', ticket_views.create_ticket, name='create_ticket'),
    path('tickets/<int:ticket_id>', ticket_views.get_ticket_details, name='ticket_details'),
    path('tickets/<int:ticket_id>/approve', ticket_views.approve_ticket, name='approve_ticket'),
    path('tickets/<int:ticket_id>/delete', ticket_views.delete_ticket, name='delete_ticket'),
    path('tickets/<int:ticket_id>/messages', ticket_views.ticket_messages, name='ticket_messages'),
]
