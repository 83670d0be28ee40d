"""
Flask CLI commands for store operations.

Commands:
- flask create-user: Create a storefront or backoffice user
- flask set-price-list: Choose the price list used system-wide
"""

import click
import re
from atelier.database import get_session
from atelier.models import AppUser, UserRole, PriceList


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='User email address')
    @click.option('--full-name', default=None, help='Display name')
    @click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.CUSTOMER.value,
                  show_default=True, help='User role')
    def create_user(email, full_name, role):
        """Create a user. Authentication itself is handled by the identity provider."""
        db_session = get_session()

        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, email):
            click.echo(click.style('❌ Email inválido. Use formato: user@example.com', fg='red'))
            return

        if db_session.query(AppUser).filter_by(email=email).first():
            click.echo(click.style(f'❌ Ya existe un usuario con el email: {email}', fg='red'))
            return

        try:
            user = AppUser(email=email, full_name=full_name, role=role)
            db_session.add(user)
            db_session.commit()

            click.echo(click.style('\n✅ Usuario creado exitosamente!', fg='green', bold=True))
            click.echo(f'   Email: {email}')
            click.echo(f'   Rol: {role}')
            click.echo(f'   ID: {user.id}')

        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error al crear usuario: {str(e)}', fg='red'))

    @app.cli.command('set-price-list')
    @click.argument('name', required=False)
    @click.option('--general', is_flag=True, help='Use only the general price rows')
    def set_price_list(name, general):
        """Set the current price list by name (or --general)."""
        from atelier.services.site_config_service import update_site_config

        db_session = get_session()

        if general:
            price_list_id = None
        else:
            if not name:
                click.echo(click.style('❌ Indique el nombre de la lista o --general.', fg='red'))
                return
            price_list = db_session.query(PriceList).filter_by(name=name).first()
            if not price_list:
                click.echo(click.style(f'❌ No existe la lista de precios: {name}', fg='red'))
                return
            price_list_id = price_list.id

        try:
            snapshot = update_site_config(db_session, {'current_price_list_id': price_list_id})
        except Exception as e:
            click.echo(click.style(f'❌ Error al actualizar la configuración: {str(e)}', fg='red'))
            return

        click.echo(click.style('✅ Lista de precios vigente actualizada', fg='green', bold=True))
        click.echo(f'   Lista: {name if price_list_id else "general"}')
        click.echo(f'   Versión: {snapshot.version}')
