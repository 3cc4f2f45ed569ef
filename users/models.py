from django.db import models


class User(models.Model):
    class RoleChoices(models.TextChoices):
        ADMIN = "ADMIN", "Admin"
        AGENT = "AGENT", "Agent"
        USER = "USER", "User"

    first_name = models.CharField(max_length=50)
    last_name = models.CharField(max_length=50)
    email = models.EmailField(unique=True)
    password = models.CharField(max_length=128)

    role = models.CharField(
        max_length=10,
        choices=RoleChoices.choices,
        default=RoleChoices.USER
    )

    created_at = models.DateTimeField(auto_now_add=True)
    last_login_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['role'], name='users_user_role_idx'),
        ]

    def __str__(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class Session(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sessions')
    token_id = models.CharField(max_length=32, unique=True)
    ip_address = models.CharField(max_length=45, null=True, blank=True)
    user_agent = models.CharField(max_length=30, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Session {self.token_id} for {self.user_id}"


class Ticket(models.Model):

    class TicketStatus(models.TextChoices):
        PENDING = "PENDING", "Pending"
        ASSIGNED = "ASSIGNED", "Assigned"
        SOLVED = "SOLVED", "Solved"
        APPROVED = "APPROVED", "Approved"
        CLOSED = "CLOSED", "Closed"

    title = models.CharField(max_length=200)
    description = models.TextField()
    status = models.CharField(
        max_length=10,
        choices=TicketStatus.choices,
        default=TicketStatus.PENDING
    )

    owner = models.ForeignKey(
        'User',
        on_delete=models.CASCADE,
        related_name='tickets'
    )
    agent = models.ForeignKey(
        'User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_tickets',
        help_text="Agent assigned to this ticket"
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    solved_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['owner', 'status'], name='users_ticket_owner_status_idx'),
            models.Index(fields=['agent', 'status'], name='users_ticket_agent_status_idx'),
        ]

    def __str__(self):
        return f"#{self.pk} {self.title}"


class Message(models.Model):

    ticket = models.ForeignKey(
        'Ticket',
        on_delete=models.CASCADE,
        related_name='messages'
    )
    author = models.ForeignKey(
        'User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='messages'
    )
    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['ticket', 'created_at'], name='users_message_ticket_idx'),
        ]

    def __str__(self):
        return f"Message in ticket #{self.ticket_id}"


class TicketStatusHistory(models.Model):

    ticket = models.ForeignKey(
        'Ticket',
        on_delete=models.CASCADE,
        related_name='status_history'
    )
    from_status = models.CharField(max_length=10, blank=True)
    to_status = models.CharField(max_length=10)
    changed_by = models.ForeignKey(
        'User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        help_text="Empty when the change was made by the auto-close timer"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"#{self.ticket_id}: {self.from_status or '-'} → {self.to_status}"
