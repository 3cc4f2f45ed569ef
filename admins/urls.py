from django.urls import path
from .views import user_views, ticket_views

app_name = 'admins'

urlpatterns = [
    path('users', user_views.list_users, name='list_users'),
    path('users/<int:user_id>', user_views.get_user, name='get_user'),
    path('users/<int:user_id>/role', user_views.update_user_role, name='update_user_role'),
    path('users/<int:user_id>/delete', user_views.delete_user, name='delete_user'),

    path('tickets', ticket_views.list_tickets, name='list_tickets'),
    path('tickets/<int:ticket_id>/assign', ticket_views.assign_ticket, name='assign_ticket'),
    path('tickets/<int:ticket_id>/unassign', ticket_views.unassign_ticket, name='unassign_ticket'),
    path('tickets/<int:ticket_id>/delete', ticket_views.delete_ticket, name='delete_ticket'),
]
