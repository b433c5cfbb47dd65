"""
Flask Web Application for the Complaint Intake System

JSON API around DialogueManager.handle_turn(). Sessions live in a
process-local map keyed by session id; each session has its own lock so
turns for one conversation never interleave.
"""

from flask import Flask, request, jsonify
import logging
import threading
import time

from complaint_intake.config import (
    COMPLAINTS_FILE,
    HOSPITAL_CONFIG,
    LOAD_IN_4BIT,
    LOG_LEVEL,
    METRICS_FILE,
    MODEL_DEVICE,
    MODEL_NAME,
    PORT_TIMEOUT_SECONDS,
)
from complaint_intake.core.dialogue_manager import DialogueManager
from complaint_intake.core.dialogue_state import DialogueState
from complaint_intake.core.field_relevance import FieldRelevanceEngine
from complaint_intake.core.hf_language_port import HuggingFaceLanguagePort
from complaint_intake.core.question_composer import QuestionComposer
from complaint_intake.core.response_validator import ResponseValidator
from complaint_intake.metrics import ConversationMetrics
from complaint_intake.persistence import ComplaintPersistence
from complaint_intake.utils.hf_client import HuggingFaceClient

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

# Initialized once at startup (model load is expensive)
hf_client = None
dialogue_manager = None
persistence = None
metrics = None

# session_id -> {'state': DialogueState, 'lock': threading.Lock, 'latency_ms': float}
sessions = {}
sessions_lock = threading.Lock()


def initialize_modules():
    """Load the model and build the dialogue manager (called once at startup)"""
    global hf_client, dialogue_manager, persistence, metrics

    if dialogue_manager is not None:
        return

    logger.info("Initializing HuggingFace model (this takes ~30 seconds)...")
    hf_client = HuggingFaceClient(
        model_name=MODEL_NAME,
        load_in_4bit=LOAD_IN_4BIT,
        device=MODEL_DEVICE,
    )
    logger.info("Model loaded successfully")

    dialogue_manager = DialogueManager(
        language_port=HuggingFaceLanguagePort(hf_client, hospital_name=HOSPITAL_CONFIG['name']),
        relevance_engine=FieldRelevanceEngine(),
        composer=QuestionComposer(),
        validator=ResponseValidator(),
        port_timeout=PORT_TIMEOUT_SECONDS,
    )
    persistence = ComplaintPersistence(COMPLAINTS_FILE)
    metrics = ConversationMetrics(METRICS_FILE)


# ========================
# Session map
# ========================

def get_or_create_session(session_id=None):
    """
    Look up a session, or start one when no id is given

    Returns:
        tuple: (session_id, session dict), or (session_id, None) if the id is unknown
    """
    with sessions_lock:
        if not session_id:
            state = DialogueState.new()
            sessions[state.session_id] = {'state': state, 'lock': threading.Lock(), 'latency_ms': 0.0}
            logger.info(f"New session created: {state.session_id}")
            return state.session_id, sessions[state.session_id]
        return session_id, sessions.get(session_id)


def record_metrics(state, latency_ms):
    if metrics is None:
        return
    try:
        metrics.record_conversation(state, latency_ms)
    except Exception as e:
        logger.error(f"Failed to record metrics for {state.session_id}: {e}")


def complete_session(state, finalized, latency_ms):
    """
    Drop a completed session; the turn that finalized it persists the complaint

    A turn replayed on an already-finished state (or on a session ended
    in the meantime) saves nothing.
    """
    with sessions_lock:
        registered = sessions.pop(state.session_id, None) is not None

    if not (finalized and registered):
        logger.info(f"Session {state.session_id} already closed, not saving again")
        return

    try:
        persistence.save_complaint(state.session_id, state.record, state.transcript)
    except Exception as e:
        logger.error(f"Failed to persist complaint {state.session_id}: {e}")
    record_metrics(state, latency_ms)


# ========================
# Routes
# ========================

@app.route('/api/message', methods=['POST'])
def post_message():
    """Process one user message and return the system reply"""
    try:
        data = request.get_json(silent=True) or {}
        text = data.get('text')

        if not isinstance(text, str) or not text.strip():
            return jsonify({
                'success': False,
                'error': 'Message text is required'
            }), 400

        if dialogue_manager is None:
            return jsonify({
                'success': False,
                'error': 'Service not initialized'
            }), 503

        session_id, session = get_or_create_session(data.get('session_id'))
        if session is None:
            return jsonify({
                'success': False,
                'error': f'Unknown or completed session: {session_id}'
            }), 404

        with session['lock']:
            start_time = time.time()
            result = dialogue_manager.handle_turn(text, session['state'])
            session['state'] = result.state
            session['latency_ms'] += (time.time() - start_time) * 1000
            latency_ms = session['latency_ms']

        if result.is_complete:
            complete_session(result.state, result.debug.get('finalized', False), latency_ms)

        response = {
            'success': True,
            'session_id': session_id,
            'message': result.system_output,
            'is_complete': result.is_complete,
            'needs_more_info': result.needs_more_info,
        }
        if result.is_complete:
            response['urgency'] = result.urgency

        return jsonify(response)

    except Exception as e:
        logger.error(f"Error processing message: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@app.route('/api/end', methods=['POST'])
def end_session():
    """End a session early; a classified partial record is still saved"""
    try:
        data = request.get_json(silent=True) or {}
        session_id = data.get('session_id')

        if not session_id:
            return jsonify({
                'success': False,
                'error': 'session_id is required'
            }), 400

        with sessions_lock:
            session = sessions.pop(session_id, None)

        if session is None:
            return jsonify({
                'success': False,
                'error': f'Unknown or completed session: {session_id}'
            }), 404

        with session['lock']:
            state = session['state']
            latency_ms = session['latency_ms']

        saved = False
        if state.record.get('subcategory') is not None and persistence is not None:
            persistence.save_complaint(state.session_id, state.record, state.transcript)
            saved = True
        record_metrics(state, latency_ms)

        logger.info(f"Session {session_id} ended early (saved={saved})")
        return jsonify({
            'success': True,
            'session_id': session_id,
            'saved': saved
        })

    except Exception as e:
        logger.error(f"Error ending session: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@app.route('/api/health', methods=['GET'])
def health():
    """Health check"""
    model_loaded = hf_client is not None and hf_client.is_loaded()
    with sessions_lock:
        active_sessions = len(sessions)

    return jsonify({
        'success': True,
        'status': 'ok' if dialogue_manager is not None else 'initializing',
        'model_loaded': model_loaded,
        'active_sessions': active_sessions
    })


@app.route('/api/metrics', methods=['GET'])
def metrics_snapshot():
    """Aggregate conversation metrics"""
    if metrics is None:
        return jsonify({
            'success': False,
            'error': 'Service not initialized'
        }), 503

    try:
        return jsonify({
            'success': True,
            'metrics': metrics.snapshot()
        })
    except Exception as e:
        logger.error(f"Error reading metrics: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


if __name__ == '__main__':
    # Initialize models before starting server
    initialize_modules()

    print("\n" + "="*60)
    print(f"{HOSPITAL_CONFIG['short_name']} COMPLAINT INTAKE - WEB API")
    print("="*60)
    print("\nServer starting...")
    print("POST messages to: http://localhost:5000/api/message")
    print("\nPress Ctrl+C to stop the server")
    print("="*60 + "\n")

    app.run(debug=False, host='0.0.0.0', port=5000)
