from datetime import date
import logging
import os
from flask import Flask, render_template, request, flash, redirect, g, url_for, jsonify, session, abort
import secrets
from flask_cors import CORS
from flask_debugtoolbar import DebugToolbarExtension
from booking_calendar.booking import database, error_utils
from booking_calendar.booking import booking_utils as util
from booking_calendar.booking.calendar import BookingCalendar, OUTCOME_BOOKED, OUTCOME_CANCELLED
from booking_calendar.booking.period import find_slot
from functools import wraps
from flask_httpauth import HTTPBasicAuth
from werkzeug.security import generate_password_hash, check_password_hash
logger = logging.getLogger(__name__)


def _env_flag(name, default=True):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes', 'on')


def create_app():
    app = Flask(__name__)
    app.secret_key = secrets.token_hex(32) #256 bit
    app.config['SECRET_KEY'] = app.secret_key
    app.config['PORT'] = int(os.environ.get('PORT', 3001))
    app.config['BOOKINGS_FILE'] = os.environ.get('BOOKINGS_FILE', os.path.join(os.getcwd(), 'bookings.json'))
    # The two server variants: seeded test users + single booking per user + reset, or none of them
    app.config['SEED_TEST_USERS'] = _env_flag('SEED_TEST_USERS')
    app.config['ENFORCE_SINGLE_BOOKING'] = _env_flag('ENFORCE_SINGLE_BOOKING')
    app.config['ENABLE_RESET'] = _env_flag('ENABLE_RESET')
    if os.environ.get('FLASK_ENV') != 'production':
        app.config["DEBUG_TB_INTERCEPT_REDIRECTS"] = False  # Prevents redirect issues
    # Browser front ends may be served from another origin
    CORS(app, resources={r"/api/*": {"origins": "*"}})
    return app

app = create_app()
# Set to make Flask debug toolbar work
if not os.environ.get('FLASK_ENV') == 'production':
    app.debug=True
auth = HTTPBasicAuth()


# Must set this in prod
prod_hash = os.getenv('HASH_ADMIN')

if prod_hash:
    admin_users = {
        "admin": generate_password_hash(prod_hash)
    }
else: # For dev
    admin_users = {
        "admin": generate_password_hash('secret')
    }

@auth.verify_password
def verify_password(username, password):
    if username in admin_users and check_password_hash(admin_users.get(username), password):
        return username

# Use decorator to create g.db instance within request context window for functions that require it
def instantiate_database(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.db = database.DatabasePersistence(app.config['BOOKINGS_FILE'],
                                            seed_test_users=app.config['SEED_TEST_USERS'],
                                            enforce_single_booking=app.config['ENFORCE_SINGLE_BOOKING'])
        return f(*args, **kwargs)
    return decorated_function

def _load_calendar():
    calendar = BookingCalendar(g.db)
    if not calendar.load_state():
        flash("Failed to load bookings.", "error")
    calendar.current_user = session.get('user_id')
    return calendar

def _json_body(*required):
    """Returns the request's JSON object, or None after flagging the first missing field in g.body_error."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        g.body_error = "Request body must be a JSON object"
        return None
    missing = [field for field in required if field not in body]
    if missing:
        g.body_error = f"Missing field: {missing[0]}"
        return None
    return body


# ---- JSON API ----

# Get current state
@app.route('/api/bookings', methods=['GET'])
@instantiate_database
def get_bookings():
    try:
        data = g.db.load_state()
    except error_utils.StorageError:
        return jsonify({"error": "Failed to load bookings"}), 500
    return jsonify(data)

# Book a slot, overwriting whatever booking held the slot key before
@app.route('/api/bookings', methods=['POST'])
@instantiate_database
def post_booking():
    body = _json_body('userId', 'date', 'slot', 'slotKey')
    if body is None:
        return jsonify({"error": g.body_error}), 400
    try:
        data = g.db.book_slot(body['userId'], body['date'], body['slot'], body['slotKey'],
                              replace=bool(body.get('replace', False)))
    except error_utils.DuplicateBookingError as e:
        return jsonify({"error": e.message}), 400
    except error_utils.StorageError:
        return jsonify({"error": "Failed to save booking"}), 500
    return jsonify(data)

# Add new user
@app.route('/api/users', methods=['POST'])
@instantiate_database
def post_user():
    body = _json_body('userId', 'password')
    if body is None:
        return jsonify({"error": g.body_error}), 400
    try:
        # create_user parses the stringified id
        int(str(body['userId']))
    except (TypeError, ValueError):
        return jsonify({"error": "userId must be numeric"}), 400
    try:
        data = g.db.create_user(body['userId'], body['password'])
    except error_utils.StorageError:
        return jsonify({"error": "Failed to create user"}), 500
    return jsonify(data)

# Reset bookings (keeping users)
@app.route('/api/reset', methods=['POST'])
@instantiate_database
def post_reset():
    if not app.config['ENABLE_RESET']:
        abort(404)
    try:
        data = g.db.reset()
    except error_utils.StorageError:
        return jsonify({"error": "Failed to reset bookings"}), 500
    return jsonify(data)


# ---- HTML calendar ----

@app.route('/')
def home():
    return redirect(url_for('get_calendar'))

@app.route("/calendar", methods=['GET'])
@instantiate_database
def get_calendar():
    calendar = _load_calendar()
    return render_template('calendar.html', calendar=calendar, util=util, admin=False)

# Slot buttons post here with the password typed into the slot form
@app.route("/calendar/book", methods=['POST'])
@instantiate_database
def book_slot():
    try:
        day = date.fromisoformat(request.form.get('date', ''))
    except ValueError:
        flash("Invalid date.", "error")
        return redirect(url_for('get_calendar'))
    slot = find_slot(request.form.get('slot_start', ''))
    if slot is None:
        flash("Invalid time slot.", "error")
        return redirect(url_for('get_calendar'))

    password = request.form.get('password', '')
    if not password:
        flash("Enter your password to book a slot.", "error")
        return redirect(url_for('get_calendar'))
    replace_confirmed = request.form.get('replace') == 'yes'
    questions = []

    def confirm(message):
        questions.append(message)
        return replace_confirmed

    def alert(message):
        flash(message, "error")

    calendar = _load_calendar()
    if calendar.is_slot_disabled(day):
        flash("This slot is outside the booking window.", "error")
        return redirect(url_for('get_calendar'))

    outcome = calendar.handle_slot_click(day, slot, lambda message: password, confirm, alert)
    logger.info("Booking %s %s ended as %s for user %s", day, slot.start, outcome, calendar.current_user)
    if calendar.current_user:
        session['user_id'] = calendar.current_user
    # The booking needs confirmation: ask and re-post with replace=yes
    if outcome == OUTCOME_CANCELLED and questions:
        return render_template('confirm_replace.html', message=questions[-1], day=day, slot=slot, password=password)
    if outcome == OUTCOME_BOOKED:
        flash(f"Booked {util.format_day_label(day)} {slot} for user {calendar.current_user}.", "success")
    return redirect(url_for('get_calendar'))

@app.route("/calendar/logout", methods=['POST'])
def logout():
    session.pop('user_id', None)
    flash("You have been signed out.", "success")
    return redirect(url_for('get_calendar'))

# Admin page with the reset button
@app.route("/admin", methods=['GET'])
@auth.login_required
@instantiate_database
def get_admin():
    calendar = _load_calendar()
    return render_template('calendar.html', calendar=calendar, util=util, admin=True,
                           reset_enabled=app.config['ENABLE_RESET'])

@app.route("/admin/reset", methods=['POST'])
@auth.login_required
@instantiate_database
def reset_bookings():
    if not app.config['ENABLE_RESET']:
        abort(404)
    calendar = BookingCalendar(g.db)
    if calendar.handle_reset():
        flash("All bookings have been reset.", "success")
    else:
        flash("Failed to reset bookings.", "error")
    return redirect(url_for('get_admin'))

@app.errorhandler(404)
def error_handler(error):
    if request.path.startswith('/api/'):
        return jsonify({"error": "Not found"}), 404
    flash(f"An error occurred.", "error")
    return redirect(url_for('get_calendar'))


def main():
    # production
    if os.environ.get('FLASK_ENV') == 'production':
       app.run(debug=False, port=app.config['PORT'])
    else:
       toolbar = DebugToolbarExtension(app)
       app.run(debug=True, port=app.config['PORT'])

if __name__ == '__main__':
    main()
