import os

from flask import Flask, Response, current_app, render_template, request
from jinja2 import DictLoader
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

from .codec import PersistenceCodec
from .config import Config, key_config_from
from .constants import ALGORITHMS, ERRORS, EXPIRATION_CHOICES, SUCCESS, SUPPORTED_EXTENSIONS
from .controller import OperationController
from .errors import ValidationError
from .formatting import (describe_verification, format_algorithm, format_expiration, format_file_size,
                         format_message_preview, format_usage, truncate_text)
from .vault import KeyringVault

base_template = '''<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{{ title | default("PGP Workbench") }}</title>
  <link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/css/bootstrap.min.css" rel="stylesheet">
</head>
<body>
<nav class="navbar navbar-expand-lg navbar-dark bg-dark mb-4">
  <div class="container-fluid">
    <a class="navbar-brand" href="{{ url_for('index') }}">PGP Workbench</a>
    <span class="navbar-text">{{ "Keys Loaded" if key_info else "No Keys" }}</span>
  </div>
</nav>
<div class="container">
  {% if message %}<div class="alert alert-success">{{ message }}</div>{% endif %}
  {% if error %}<div class="alert alert-danger" style="white-space: pre-line">{{ error }}</div>{% endif %}
  {% block content %}{% endblock %}
</div>
<script src="https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/js/bootstrap.bundle.min.js"></script>
</body>
</html>
'''

index_template = '''{% extends "base.html" %}
{% block content %}
<div class="card mb-4">
  <div class="card-header"><h2>Key Pair</h2></div>
  <div class="card-body">
    {% if key_info %}
    <dl class="row">
      <dt class="col-sm-3">Key ID</dt><dd class="col-sm-9">{{ key_info.key_id }}</dd>
      <dt class="col-sm-3">Fingerprint</dt><dd class="col-sm-9"><code>{{ key_info.fingerprint }}</code></dd>
      <dt class="col-sm-3">Algorithm</dt><dd class="col-sm-9">{{ key_info.algorithm }}</dd>
      <dt class="col-sm-3">Created</dt><dd class="col-sm-9">{{ key_info.created }}</dd>
      <dt class="col-sm-3">User IDs</dt><dd class="col-sm-9">{{ key_info.user_ids | join(", ") }}</dd>
      <dt class="col-sm-3">Private key</dt><dd class="col-sm-9">{{ "Yes" if key_info.has_private_key else "No (public key only)" }}</dd>
    </dl>
    <a href="{{ url_for('save_keys') }}" class="btn btn-secondary">Save Key Pair (.json)</a>
    <a href="{{ url_for('download_public') }}" class="btn btn-secondary">Download Public Key (.asc)</a>
    <a href="{{ url_for('download_text') }}" class="btn btn-secondary">Export as Text (.txt)</a>
    <form method="post" action="{{ url_for('clear_keys') }}" class="d-inline"><button type="submit" class="btn btn-outline-danger">Clear</button></form>
    {% else %}
    <p>No key pair available. Please generate or load keys first.</p>
    {% endif %}
  </div>
</div>

<div class="card mb-4">
  <div class="card-header"><h2>Generate Key Pair</h2></div>
  <div class="card-body">
    <form method="post" action="{{ url_for('index') }}">
      <div class="mb-3"><label class="form-label">Name:</label><input type="text" name="name" class="form-control" required></div>
      <div class="mb-3"><label class="form-label">Email:</label><input type="email" name="email" class="form-control" required></div>
      <div class="mb-3"><label class="form-label">Comment:</label><input type="text" name="comment" class="form-control"></div>
      <div class="mb-3"><label class="form-label">Passphrase (at least 8 characters):</label><input type="password" name="passphrase" class="form-control" required></div>
      <div class="mb-3"><label class="form-label">Algorithm:</label>
        <select name="algorithm" class="form-select">
          {% for algorithm in algorithms %}<option value="{{ algorithm }}" {{ "selected" if algorithm == default_algorithm }}>{{ algorithm_labels[algorithm] }}</option>{% endfor %}
        </select></div>
      <div class="mb-3"><label class="form-label">Expiration:</label>
        <select name="expiration" class="form-select">
          {% for seconds, label in expirations.items() %}<option value="{{ seconds }}" {{ "selected" if seconds == default_expiration }}>{{ label }}</option>{% endfor %}
        </select></div>
      <div class="mb-3">
        <label class="form-check-label"><input type="checkbox" name="usage_sign" class="form-check-input" checked> Sign</label>
        <label class="form-check-label"><input type="checkbox" name="usage_encrypt" class="form-check-input" checked> Encrypt</label>
        <label class="form-check-label"><input type="checkbox" class="form-check-input" checked disabled> Certify (always on)</label>
      </div>
      <button type="submit" class="btn btn-primary">Generate Key Pair</button>
    </form>
  </div>
</div>

<div class="card mb-4">
  <div class="card-header"><h2>Load Key Pair</h2></div>
  <div class="card-body">
    <form method="post" action="{{ url_for('load_keys') }}" enctype="multipart/form-data">
      <div class="mb-3"><label class="form-label">Key file (.json, .asc, .txt, .pgp, .key):</label><input type="file" name="key_file" class="form-control"></div>
      <div class="mb-3"><label class="form-label">Or paste an armored key:</label><textarea name="key_text" rows="4" class="form-control"></textarea></div>
      <button type="submit" class="btn btn-primary">Load</button>
    </form>
    {% if keyring_enabled %}
    <hr>
    <form method="post" class="row g-2">
      <div class="col-auto"><input type="password" name="master_password" class="form-control" placeholder="Master password"></div>
      <div class="col-auto"><button type="submit" formaction="{{ url_for('remember_keys') }}" class="btn btn-outline-secondary">Remember in Keyring</button></div>
      <div class="col-auto"><button type="submit" formaction="{{ url_for('recall_keys') }}" class="btn btn-outline-secondary">Restore from Keyring</button></div>
    </form>
    {% endif %}
  </div>
</div>

<div class="card mb-4">
  <div class="card-header"><h2>Sign &amp; Verify</h2></div>
  <div class="card-body">
    <form method="post" action="{{ url_for('sign') }}">
      <div class="mb-3"><label class="form-label">Message to sign:</label><textarea name="message" rows="4" class="form-control"></textarea></div>
      <div class="mb-3"><label class="form-label">Key passphrase:</label><input type="password" name="passphrase" class="form-control"></div>
      <button type="submit" class="btn btn-primary">Sign Message</button>
    </form>
    <hr>
    <form method="post" action="{{ url_for('verify') }}">
      <div class="mb-3"><label class="form-label">Signed message:</label><textarea name="signed_message" rows="6" class="form-control" placeholder="-----BEGIN PGP SIGNED MESSAGE----- ..."></textarea></div>
      <div class="mb-3"><label class="form-label">Custom public key (optional, overrides your own):</label><textarea name="custom_public_key" rows="4" class="form-control"></textarea></div>
      <button type="submit" class="btn btn-primary">Verify Message</button>
    </form>
  </div>
</div>

<div class="card mb-4">
  <div class="card-header"><h2>Encrypt &amp; Decrypt</h2></div>
  <div class="card-body">
    <form method="post" action="{{ url_for('encrypt') }}">
      <div class="mb-3"><label class="form-label">Message to encrypt:</label><textarea name="message" rows="4" class="form-control"></textarea></div>
      <div class="mb-3"><label class="form-label">Recipient public key (optional, defaults to your own):</label><textarea name="custom_public_key" rows="4" class="form-control" placeholder="-----BEGIN PGP PUBLIC KEY BLOCK----- ..."></textarea></div>
      <div class="mb-3"><label class="form-label">Key passphrase (only to sign before encrypting):</label><input type="password" name="passphrase" class="form-control"></div>
      <button type="submit" class="btn btn-primary">Encrypt Message</button>
    </form>
    <hr>
    <form method="post" action="{{ url_for('decrypt') }}">
      <div class="mb-3"><label class="form-label">Encrypted message:</label><textarea name="encrypted_message" rows="6" class="form-control" placeholder="-----BEGIN PGP MESSAGE----- ..."></textarea></div>
      <div class="mb-3"><label class="form-label">Key passphrase:</label><input type="password" name="passphrase" class="form-control"></div>
      <div class="mb-3"><label class="form-label">Signer public key (optional, checks a signature inside the message):</label><textarea name="custom_public_key" rows="4" class="form-control"></textarea></div>
      <button type="submit" class="btn btn-primary">Decrypt Message</button>
    </form>
  </div>
</div>

{% if output %}
<div class="card mb-4">
  <div class="card-header"><h3>{{ output_title }}</h3></div>
  <div class="card-body">
    {% if input_preview %}<p class="text-muted mb-1">Original message:</p><pre class="small text-muted">{{ input_preview }}</pre>{% endif %}
    <pre class="bg-light p-3">{{ output }}</pre>
  </div>
</div>
{% endif %}
{% endblock %}
'''

template_dict = {
    'base.html': base_template,
    'index.html': index_template,
}


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    app.config.from_prefixed_env("PGP_WORKBENCH")
    if overrides:
        app.config.update(overrides)
    app.jinja_loader = DictLoader(template_dict)

    codec = PersistenceCodec()
    vault = KeyringVault(codec, service=app.config["KEYRING_SERVICE"]) if app.config["ENABLE_KEYRING"] else None
    app.extensions["pgp_workbench"] = OperationController(codec=codec, vault=vault,
                                                          generation_timeout=app.config["GENERATION_TIMEOUT"])
    register_routes(app)
    return app


def _controller():
    return current_app.extensions["pgp_workbench"]


def _render(result=None, success=None, output=None, output_title=None, error=None, input_preview=None):
    message = None
    if result is not None:
        if result.ok:
            message = success
        else:
            error = result.error
    return render_template('index.html', title="PGP Workbench", key_info=_controller().key_info(),
                           message=message, error=error, output=output, output_title=output_title,
                           input_preview=format_message_preview(input_preview) if output else None,
                           algorithms=ALGORITHMS, algorithm_labels={a: format_algorithm(a) for a in ALGORITHMS},
                           default_algorithm=current_app.config["DEFAULT_ALGORITHM"],
                           expirations={seconds: format_expiration(seconds) for seconds in EXPIRATION_CHOICES},
                           default_expiration=current_app.config["DEFAULT_EXPIRATION"],
                           keyring_enabled=_controller().vault is not None)


def _download(result, mimetype):
    if not result.ok:
        return result.error, 404
    filename, content = result.value
    return Response(content, mimetype=mimetype,
                    headers={"Content-Disposition": f"attachment;filename={secure_filename(filename)}"})


def register_routes(app):

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(e):
        limit = format_file_size(current_app.config["MAX_CONTENT_LENGTH"])
        return _render(error=f"File is too large. The upload limit is {limit}."), 413

    @app.route('/', methods=['GET', 'POST'])
    def index():
        if request.method != 'POST':
            return _render()
        form = request.form
        try:
            config = key_config_from(current_app.config, algorithm=form.get('algorithm'),
                                     expiration=form.get('expiration'),
                                     sign='usage_sign' in form, encrypt='usage_encrypt' in form)
        except ValidationError as e:
            return _render(error=e.message)
        result = _controller().generate(form.get('name', ''), form.get('email', ''), form.get('passphrase', ''),
                                        comment=form.get('comment', ''), config=config)
        if result.ok:
            app.logger.info("Generated key pair %s", result.value.metadata.key_id)
        return _render(result, success=SUCCESS["generate"],
                       output=result.value.public_key_armored if result.ok else None,
                       output_title=f"Generated PGP Public Key ({format_usage(config.usage)}; "
                                    f"{format_expiration(config.expiration_seconds)})")

    @app.route('/keys/save')
    def save_keys():
        return _download(_controller().save(), 'application/json')

    @app.route('/keys/public')
    def download_public():
        return _download(_controller().export_public_key(), 'application/pgp-keys')

    @app.route('/keys/text')
    def download_text():
        return _download(_controller().export_text(), 'text/plain')

    @app.route('/keys/load', methods=['POST'])
    def load_keys():
        upload = request.files.get('key_file')
        if upload and upload.filename:
            extension = os.path.splitext(secure_filename(upload.filename))[1].lower()
            if extension not in SUPPORTED_EXTENSIONS:
                return _render(error=ERRORS["unsupported_file"])
            raw = upload.read()
            try:
                content = raw.decode('utf-8')
            except UnicodeDecodeError:
                return _render(error="Failed to read file: not UTF-8 text")
            success = f"{SUCCESS['load']} {truncate_text(upload.filename, 40)} ({format_file_size(len(raw))})"
        else:
            content = request.form.get('key_text', '')
            success = SUCCESS["load"]
        return _render(_controller().load(content), success=success)

    @app.route('/keys/clear', methods=['POST'])
    def clear_keys():
        return _render(_controller().clear(), success=SUCCESS["clear"])

    @app.route('/keys/remember', methods=['POST'])
    def remember_keys():
        return _render(_controller().remember(request.form.get('master_password', '')), success=SUCCESS["remember"])

    @app.route('/keys/recall', methods=['POST'])
    def recall_keys():
        return _render(_controller().recall(request.form.get('master_password', '')), success=SUCCESS["recall"])

    @app.route('/sign', methods=['POST'])
    def sign():
        message = request.form.get('message', '')
        result = _controller().sign(message, request.form.get('passphrase', ''))
        return _render(result, success=SUCCESS["sign"], output=result.value, output_title="Signed Message",
                       input_preview=message)

    @app.route('/verify', methods=['POST'])
    def verify():
        result = _controller().verify(request.form.get('signed_message', ''),
                                      request.form.get('custom_public_key'))
        if result.ok and not result.value.valid:
            return _render(error=describe_verification(result.value))
        return _render(result, success=SUCCESS["verify"],
                       output=describe_verification(result.value) if result.ok else None,
                       output_title="Verification Result")

    @app.route('/encrypt', methods=['POST'])
    def encrypt():
        controller = _controller()
        message = request.form.get('message', '')
        custom_key = request.form.get('custom_public_key')
        passphrase = request.form.get('passphrase')
        if passphrase:
            result = controller.sign_and_encrypt(message, passphrase, custom_key)
        else:
            result = controller.encrypt(message, custom_key)
        return _render(result, success=SUCCESS["encrypt"], output=result.value, output_title="Encrypted Message",
                       input_preview=message)

    @app.route('/decrypt', methods=['POST'])
    def decrypt():
        controller = _controller()
        encrypted = request.form.get('encrypted_message', '')
        passphrase = request.form.get('passphrase', '')
        custom_key = request.form.get('custom_public_key')
        if custom_key and custom_key.strip():
            result = controller.decrypt_and_verify(encrypted, passphrase, custom_key)
            output = None
            if result.ok:
                verdict = "no signature"
                if result.value.signed:
                    verdict = "VALID" if result.value.signature_valid else "INVALID"
                output = f"{result.value.plaintext}\n\nSignature: {verdict}"
        else:
            result = controller.decrypt(encrypted, passphrase)
            output = result.value
        return _render(result, success=SUCCESS["decrypt"], output=output, output_title="Decrypted Message")


if __name__ == '__main__':
    # For development only; use a WSGI server such as waitress or gunicorn when deploying
    create_app().run(debug=False)
