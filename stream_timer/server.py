from flask import Flask, request, jsonify, render_template, redirect, url_for
import logging

from stream_timer import config
from stream_timer.config import ConfigError
from stream_timer.core import Ticker, TimerStateMachine, follow_store
from stream_timer.display import DisplayRegistry, EMPTY_MESSAGE
from stream_timer.logger import get_logger
from stream_timer.schedule import (
    DIRECTIONS, JsonSlotStorage, SectionListStore, ValidationError, parse_sections, persist_to,
)
from stream_timer.token_codec import TokenCodec

log = logging.getLogger(__name__)


def _json_body():
    """Request body as a dict, or None when it is missing or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _is_index(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _bad_request(message):
    return jsonify({'success': False, 'error': message}), 400


def _not_found(message='Section not found.'):
    return jsonify({'success': False, 'error': message}), 404


def create_app(settings=None, storage=None, ticker_factory=None):
    """Builds the Flask app with its own store, editor timer and display registry.

    ``ticker_factory`` returns a new ticker per timer; pass one that returns
    None to drive timers by hand.
    """
    settings = settings if settings is not None else config.load_settings()
    get_logger(level=settings['log_level'], log_dir=settings['log_dir'])

    if ticker_factory is None:
        def ticker_factory():
            return Ticker(interval=settings['tick_interval'])

    storage = storage or JsonSlotStorage(config.storage_path(settings))
    codec = TokenCodec(settings['secret'])

    store = SectionListStore(storage.load())
    timer = TimerStateMachine(store.sections, ticker=ticker_factory())
    store.on_change(persist_to(storage))
    store.on_change(follow_store(timer))
    displays = DisplayRegistry(codec, ticker_factory=ticker_factory, max_size=settings['display_cache_size'])

    app = Flask(__name__)
    app.template_folder = 'templates'
    app.config['STREAM_TIMER'] = settings
    app.extensions['stream_timer'] = {
        'store': store,
        'timer': timer,
        'codec': codec,
        'displays': displays,
    }

    # --- PAGES ---

    @app.route('/')
    def index():
        """Redirects base URL to the control panel."""
        return redirect(url_for('control_panel'))

    @app.route('/control')
    def control_panel():
        """Renders the editor: section list, live timer and share button."""
        return render_template('control.html', sections=[s.to_dict() for s in store.sections],
                               share_enabled=codec.configured)

    @app.route('/display')
    def display_page():
        """Renders the read-only display. The page polls /api/display_state with its token."""
        return render_template('display.html', token=request.args.get('token', ''), empty_message=EMPTY_MESSAGE)

    # --- SECTION API ---

    @app.route('/api/sections', methods=['GET'])
    def list_sections():
        return jsonify({'sections': [s.to_dict() for s in store.sections]})

    @app.route('/api/sections', methods=['POST'])
    def add_section():
        data = _json_body()
        if data is None:
            return _bad_request('Invalid request format.')
        if not store.add(data.get('name'), data.get('duration')):
            return _bad_request('Section needs a name and a positive duration.')
        return jsonify({'success': True, 'sections': [s.to_dict() for s in store.sections]}), 201

    @app.route('/api/sections/<int:index>', methods=['PUT'])
    def edit_section(index):
        data = _json_body()
        if data is None:
            return _bad_request('Invalid request format.')
        if not 0 <= index < len(store):
            return _not_found()
        if not store.edit(index, data.get('name'), data.get('duration')):
            return _bad_request('Section needs a name and a positive duration.')
        return jsonify({'success': True, 'sections': [s.to_dict() for s in store.sections]})

    @app.route('/api/sections/<int:index>', methods=['DELETE'])
    def delete_section(index):
        if not store.delete(index):
            return _not_found()
        return jsonify({'success': True, 'sections': [s.to_dict() for s in store.sections]})

    @app.route('/api/sections/<int:index>/move', methods=['POST'])
    def move_section(index):
        data = _json_body()
        if data is None or data.get('direction') not in DIRECTIONS:
            return _bad_request("Direction must be 'up' or 'down'.")
        if not 0 <= index < len(store):
            return _not_found()
        moved = store.move(index, data['direction'])
        return jsonify({'success': True, 'moved': moved, 'sections': [s.to_dict() for s in store.sections]})

    @app.route('/api/sections/reorder', methods=['POST'])
    def reorder_sections():
        data = _json_body()
        if data is None:
            return _bad_request('Invalid request format.')
        from_index = data.get('from_index')
        to_index = data.get('to_index')
        if not _is_index(from_index) or not _is_index(to_index):
            return _bad_request('from_index and to_index must be integers.')
        if not (0 <= from_index < len(store) and 0 <= to_index < len(store)):
            return _not_found()
        moved = store.reorder(from_index, to_index)
        return jsonify({'success': True, 'moved': moved, 'sections': [s.to_dict() for s in store.sections]})

    # --- TIMER API ---

    @app.route('/api/start_timer', methods=['POST'])
    def start_timer_route():
        """Endpoint to start or resume the timer."""
        if timer.start():
            return jsonify({'success': True, 'message': 'Timer started.'})
        return jsonify({'success': False, 'error': 'Nothing to start.'}), 400

    @app.route('/api/pause_timer', methods=['POST'])
    def pause_timer_route():
        if timer.pause():
            return jsonify({'success': True, 'message': 'Timer paused.'})
        return jsonify({'success': False, 'error': 'Timer is not running.'}), 400

    @app.route('/api/reset_timer', methods=['POST'])
    def reset_timer_route():
        timer.reset()
        return jsonify({'success': True, 'message': 'Timer reset.'})

    @app.route('/api/state', methods=['GET'])
    def get_state():
        """Endpoint for the control page to poll the current timer state."""
        return jsonify(timer.details())

    # --- SHARE API ---

    @app.route('/api/create_token', methods=['POST'])
    def create_token():
        """Signs the posted sections (or the stored ones when none are posted)."""
        data = _json_body()
        if data is None:
            return _bad_request('Invalid request format.')
        try:
            sections = parse_sections(data['sections']) if 'sections' in data else store.sections
            token = codec.encode(sections)
        except ValidationError as e:
            return _bad_request(str(e))
        except ConfigError as e:
            log.error(f"Cannot create share token: {e}")
            return jsonify({'success': False, 'error': str(e)}), 500
        return jsonify({'success': True, 'token': token, 'url': url_for('display_page', token=token, _external=True)})

    @app.route('/api/display_state', methods=['GET'])
    def display_state():
        """Endpoint for display pages to poll their countdown."""
        return jsonify(displays.get(request.args.get('token', '')).state())

    return app


def run(settings=None, debug=False):
    settings = settings if settings is not None else config.load_settings()
    app = create_app(settings)
    app.run(debug=debug, host=settings['host'], port=settings['port'], use_reloader=False)


if __name__ == '__main__':
    run(debug=True)
