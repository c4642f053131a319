from django import forms
from django.contrib.auth.forms import AuthenticationForm


class LoginForm(AuthenticationForm):
    """Login with the email address as the username."""

    username = forms.EmailField(
        label="Email",
        widget=forms.EmailInput(attrs={
            'class': 'input input-bordered w-full',
            'autofocus': True,
            'autocomplete': 'email',
        })
    )
    password = forms.CharField(
        label="Password",
        strip=False,
        widget=forms.PasswordInput(attrs={
            'class': 'input input-bordered w-full',
            'autocomplete': 'current-password',
        })
    )

    error_messages = {
        'invalid_login': "Invalid email or password.",
        'inactive': "This account is inactive. Ask a gradebook manager to reactivate it.",
    }
