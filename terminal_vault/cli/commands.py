"""CLI commands implemented with click.

Thin caller over :mod:`terminal_vault.lib`: it prompts, counts failed
unlocks, engages the lockout and turns library errors into exit status 1.
The secret store comes from ``ctx.obj['store']`` (tests) or the OS keyring.
"""
from __future__ import annotations
import logging, sys, time
from pathlib import Path
import click
from ..config.settings import LOG_FORMAT, LOG_LEVEL, MAX_ATTEMPTS, PASSWORD_DEFAULT_LENGTH
from ..lib.diagnostics import run_self_check
from ..lib.errors import DecryptionError, EntryError, VaultError
from ..lib.keystore import KeyringStore
from ..lib.lockout import AttemptTracker, LockoutController
from ..lib.manager import VaultManager
from ..lib.models import Entry
from ..lib.passgen import generate_password
from ..lib.paths import VaultPaths, configured_paths, default_base_dir, home_dir, select_base_dir

def _fail(message: str) -> None:
	click.echo(f'Error: {message}', err=True)
	sys.exit(1)

def _manager(ctx: click.Context, chosen_dir=None) -> VaultManager:
	obj = ctx.obj
	try:
		paths = select_base_dir(chosen_dir)
	except VaultError as e:
		_fail(str(e))
	return VaultManager(paths, obj.get('store') or KeyringStore(), params=obj.get('kdf_params'))

def _lockout(ctx: click.Context, paths: VaultPaths) -> LockoutController:
	"""Refuse (exit 1) while a cooldown is active."""
	lockout = LockoutController(paths.lock, clock=ctx.obj.get('clock') or time.time)
	try:
		lockout.check()
	except VaultError as e:
		_fail(str(e))
	return lockout

def _unlock(ctx: click.Context):
	"""Prompt until unlocked; three failures engage the lock and exit."""
	mgr = _manager(ctx)
	if not mgr.exists():
		_fail("No vault found. Run 'init' first.")
	lockout = _lockout(ctx, mgr.paths)
	attempts = AttemptTracker(MAX_ATTEMPTS)
	while True:
		passphrase = click.prompt('Master passphrase', hide_input=True)
		try:
			result = mgr.unlock(passphrase)
		except DecryptionError as e:
			if attempts.fail():
				lockout.engage()
				_fail(f'Too many failed attempts. Locked for {lockout.lock_seconds} seconds.')
			click.echo(f'Unlock failed: {e} | Attempts left: {attempts.remaining}', err=True)
			continue
		except VaultError as e:
			_fail(str(e))
		if result.migrated:
			click.echo(f'Vault migrated from {result.format} format.')
		return mgr, result.vault, passphrase

def _save(mgr: VaultManager, vault, passphrase: str) -> None:
	try:
		mgr.save(vault, passphrase)
	except VaultError as e:
		_fail(str(e))


@click.group()
@click.option('--verbose', is_flag=True, help='Debug logging.')
@click.pass_context
def cli(ctx, verbose):
	"""terminal-vault: encrypted local secret store"""
	ctx.ensure_object(dict)
	logging.basicConfig(level=logging.DEBUG if verbose else LOG_LEVEL, format=LOG_FORMAT)

@cli.command()
@click.option('--length', default=PASSWORD_DEFAULT_LENGTH, show_default=True, type=int, help='Minimum 12.')
def generate(length):
	"""Print a strong random password."""
	click.echo(generate_password(length))

@cli.command()
@click.option('--dir', 'vault_dir', default=None, help='Storage directory inside your home (used only on first run).')
@click.option('--password', prompt='Set a master passphrase', hide_input=True, confirmation_prompt=True)
@click.pass_context
def init(ctx, vault_dir, password):
	"""Initialise a new encrypted vault."""
	mgr = _manager(ctx, vault_dir)
	try:
		vault = mgr.create(password)
	except VaultError as e:
		_fail(str(e))
	click.echo(f'Vault created at {mgr.paths.base}.')
	vault.wipe()

@cli.command()
@click.pass_context
def info(ctx):
	"""Show revision and item counts."""
	mgr, vault, _ = _unlock(ctx)
	click.echo(f'Location: {mgr.paths.vault}')
	click.echo(f'Revision: {vault.revision}')
	click.echo(f'Entries: {len(vault.entries)} in {len(vault.services())} services')
	click.echo(f'Notes: {len(vault.notes)}')
	vault.wipe()

@cli.command('list')
@click.pass_context
def list_entries(ctx):
	"""List credentials grouped by service (passwords hidden)."""
	_mgr, vault, _ = _unlock(ctx)
	for service in vault.services():
		click.echo(service)
		for e in vault.entries_for(service):
			user = f' ({e.username})' if e.username else ''
			click.echo(f'  {e.id}: {e.email}{user}')
	vault.wipe()

@cli.command()
@click.argument('entry_id')
@click.pass_context
def show(ctx, entry_id):
	"""Show one credential including its password."""
	_mgr, vault, _ = _unlock(ctx)
	e = vault.find_entry(entry_id)
	if e is None:
		vault.wipe()
		_fail('Entry not found')
	click.echo(f"Service: {e.name}\nEmail: {e.email}\nUsername: {e.username or '-'}\nPassword: {e.password}\nNotes: {e.notes or '-'}")
	vault.wipe()

@cli.command()
@click.option('--name', prompt='Service')
@click.option('--username', prompt='Username', default='', show_default=False)
@click.option('--email', prompt='Email')
@click.option('--notes', prompt='Notes', default='', show_default=False)
@click.option('--generate', 'gen', is_flag=True, help='Generate a strong password instead of prompting.')
@click.pass_context
def add(ctx, name, username, email, notes, gen):
	"""Add a credential."""
	mgr, vault, passphrase = _unlock(ctx)
	password = generate_password() if gen else click.prompt('Password', hide_input=True)
	try:
		entry = vault.add_entry(Entry.create(name, email, password, username=username, notes=notes))
	except EntryError as e:
		_fail(str(e))
	_save(mgr, vault, passphrase)
	click.echo(f'Added {entry.name} ({entry.id}).')
	vault.wipe()

@cli.command()
@click.argument('entry_id')
@click.pass_context
def remove(ctx, entry_id):
	"""Delete a credential."""
	mgr, vault, passphrase = _unlock(ctx)
	try:
		entry = vault.remove_entry(entry_id)
	except EntryError as e:
		_fail(str(e))
	_save(mgr, vault, passphrase)
	click.echo(f'Removed {entry.name}.')
	vault.wipe()

@cli.command('set-password')
@click.argument('entry_id')
@click.option('--generate', 'gen', is_flag=True, help='Generate a strong password.')
@click.pass_context
def set_password(ctx, entry_id, gen):
	"""Change the password stored for a credential."""
	mgr, vault, passphrase = _unlock(ctx)
	password = generate_password() if gen else click.prompt('New password', hide_input=True)
	try:
		entry = vault.update_password(entry_id, password)
	except EntryError as e:
		_fail(str(e))
	_save(mgr, vault, passphrase)
	click.echo(f'Password updated for {entry.name}.')
	vault.wipe()

@cli.command('change-master')
@click.option('--new-password', prompt='New master passphrase', hide_input=True, confirmation_prompt=True)
@click.pass_context
def change_master(ctx, new_password):
	"""Re-encrypt the vault under a new master passphrase."""
	mgr, vault, passphrase = _unlock(ctx)
	try:
		mgr.change_passphrase(vault, passphrase, new_password)
	except VaultError as e:
		_fail(str(e))
	click.echo('Master passphrase updated.')
	vault.wipe()

@cli.command('self-check')
@click.option('--decrypt', is_flag=True, help='Also prompt for the passphrase and test decryption.')
@click.pass_context
def self_check(ctx, decrypt):
	"""Run read-only integrity checks."""
	home, store = home_dir(), ctx.obj.get('store') or KeyringStore()
	if not decrypt:
		report = run_self_check(home, store)
	else:
		try:
			paths = configured_paths(home)
		except VaultError:
			paths = VaultPaths.for_dir(default_base_dir(home))
		lockout = _lockout(ctx, paths)
		attempts = AttemptTracker(MAX_ATTEMPTS)
		while True:
			report = run_self_check(home, store, click.prompt('Passphrase for decrypt test', hide_input=True))
			if not report.decrypt_failed:
				break
			if attempts.fail():
				lockout.engage()
				_fail(f'Too many failed attempts. Locked for {lockout.lock_seconds} seconds.')
			click.echo(f'Decrypt test failed | Attempts left: {attempts.remaining}', err=True)
	for line in report.lines():
		click.echo(line)
	click.echo(f'Self-check complete: {report.count("FAIL")} failure(s), {report.count("WARN")} warning(s).')
	if not report.ok:
		sys.exit(1)


# --- Note subcommands ---

@cli.group()
def note():
	"""Manage private notes."""

@note.command('add')
@click.option('--title', prompt=True)
@click.option('--content', prompt=True)
@click.pass_context
def note_add(ctx, title, content):
	mgr, vault, passphrase = _unlock(ctx)
	try:
		n = vault.add_note(title, content)
	except EntryError as e:
		_fail(str(e))
	_save(mgr, vault, passphrase)
	click.echo(f'Note {n.id} created.')
	vault.wipe()

@note.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--overwrite', is_flag=True, help='Replace an existing note with the same title.')
@click.pass_context
def note_import(ctx, path, overwrite):
	"""Store a text file as a note titled with its file name."""
	mgr, vault, passphrase = _unlock(ctx)
	if not overwrite and vault.find_note_by_title(path.name) is not None:
		overwrite = click.confirm(f"Note '{path.name}' exists. Overwrite?", default=False)
		if not overwrite:
			click.echo('Cancelled.')
			vault.wipe()
			return
	try:
		mgr.import_text_note(vault, path, passphrase, overwrite=overwrite)
	except VaultError as e:
		_fail(str(e))
	click.echo(f"Stored note '{path.name}' in vault.")
	vault.wipe()

@note.command('list')
@click.pass_context
def note_list(ctx):
	_mgr, vault, _ = _unlock(ctx)
	for n in vault.notes:
		click.echo(f'{n.id}: {n.title}')
	vault.wipe()

@note.command('show')
@click.argument('note_id')
@click.pass_context
def note_show(ctx, note_id):
	_mgr, vault, _ = _unlock(ctx)
	n = vault.find_note(note_id)
	if n is None:
		vault.wipe()
		_fail('Not found')
	click.echo(f'{n.title}\n---\n{n.content}')
	vault.wipe()

@note.command('remove')
@click.argument('note_id')
@click.pass_context
def note_remove(ctx, note_id):
	mgr, vault, passphrase = _unlock(ctx)
	try:
		n = vault.remove_note(note_id)
	except EntryError as e:
		_fail(str(e))
	_save(mgr, vault, passphrase)
	click.echo(f"Removed note '{n.title}'.")
	vault.wipe()
