from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The given email must be set")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("global_role", User.GlobalRole.GLOBAL_ADMINISTRATOR)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    class GlobalRole(models.TextChoices):
        USER = "user", _("User")
        GLOBAL_ADMINISTRATOR = "global_administrator", _("Global administrator")

    username = None
    email = models.EmailField("email address", unique=True)
    name = models.CharField(max_length=150)
    global_role = models.CharField(
        max_length=32,
        choices=GlobalRole.choices,
        default=GlobalRole.USER,
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["name"]

    objects = UserManager()

    def __str__(self):
        return self.email

    @property
    def is_global_admin(self) -> bool:
        return self.is_active and self.global_role == self.GlobalRole.GLOBAL_ADMINISTRATOR


class Company(models.Model):
    name = models.CharField(max_length=255)
    code = models.CharField(
        max_length=10,
        unique=True,
        validators=[
            RegexValidator(
                r"^[A-Z0-9]{2,10}$",
                "Company code must be 2-10 uppercase letters or digits.",
            )
        ],
    )
    currency = models.CharField(max_length=3, default="USD")
    fiscal_year_start = models.PositiveSmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(12)],
        help_text="Month the fiscal year starts in (1-12)",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Company")
        verbose_name_plural = _("Companies")
        ordering = ["name"]

    def __str__(self):
        return f"{self.code} - {self.name}"


class Role(models.TextChoices):
    """Company-scoped roles, lowest to highest."""
    ASSISTANT = "assistant", _("Assistant")
    ACCOUNTANT = "accountant", _("Accountant")
    MANAGER = "manager", _("Manager")
    ADMINISTRATOR = "administrator", _("Administrator")


class UserCompany(models.Model):
    """
    A user's role within one company.

    The user is a member of the company only while the row is active.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.ASSISTANT)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Company membership")
        verbose_name_plural = _("Company memberships")
        constraints = [
            models.UniqueConstraint(
                fields=["user", "company"],
                name="uniq_user_company",
            )
        ]
        indexes = [
            models.Index(fields=["company", "is_active"], name="membership_company_active_idx"),
        ]

    def __str__(self):
        return f"{self.user_id}@{self.company_id}:{self.role}"


class ActivityLog(models.Model):
    """Audit trail of successful and denied operations."""

    class Outcome(models.TextChoices):
        SUCCESS = "success", _("Success")
        DENIED = "denied", _("Denied")
        FAILED = "failed", _("Failed")

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="activity",
    )
    company = models.ForeignKey(
        Company,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="activity",
    )
    action = models.CharField(max_length=50)
    resource = models.CharField(max_length=50)
    resource_id = models.CharField(max_length=64, blank=True, default="")
    outcome = models.CharField(max_length=10, choices=Outcome.choices, default=Outcome.SUCCESS)
    details = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-timestamp", "-id"]
        indexes = [
            models.Index(fields=["company", "timestamp"], name="activity_company_ts_idx"),
            models.Index(fields=["user", "timestamp"], name="activity_user_ts_idx"),
        ]

    def __str__(self):
        return f"{self.action} {self.resource}#{self.resource_id} ({self.outcome})"
