"""
Authentication forms using Flask-WTF.
Flask-WTF reads JSON request bodies as form data, so the API login goes
through the same validation and CSRF protection as a browser form.
"""

from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField
from wtforms.validators import DataRequired


class LoginForm(FlaskForm):
    """Login form with username and password."""

    username = StringField('Username', validators=[
        DataRequired(message='Username is required')
    ])

    password = PasswordField('Password', validators=[
        DataRequired(message='Password is required')
    ])

    remember_me = BooleanField('Remember me')
