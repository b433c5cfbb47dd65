"""
Console Test Harness for the Complaint Intake DialogueManager

Runs handle_turn() from stdin so a conversation can be tried without Flask.
"""

import argparse
import logging
import sys
import time

from complaint_intake.config import (
    COMPLAINTS_FILE,
    HOSPITAL_CONFIG,
    LOAD_IN_4BIT,
    METRICS_FILE,
    MODEL_DEVICE,
    MODEL_NAME,
    PORT_TIMEOUT_SECONDS,
)
from complaint_intake.core.dialogue_manager import DialogueManager
from complaint_intake.core.field_relevance import FieldRelevanceEngine
from complaint_intake.core.hf_language_port import HuggingFaceLanguagePort
from complaint_intake.core.question_composer import QuestionComposer
from complaint_intake.core.response_validator import ResponseValidator
from complaint_intake.metrics import ConversationMetrics
from complaint_intake.persistence import ComplaintPersistence
from complaint_intake.utils.hf_client import HuggingFaceClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"quit", "exit", "stop"}


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def print_debug_info(turn_result):
    """Print debug information from TurnResult"""
    print("\n" + "-" * 60)
    print("DEBUG INFO:")
    print("-" * 60)

    debug = turn_result.debug
    metadata = turn_result.turn_metadata

    if 'classification' in debug:
        print(f"Classification: {debug['classification']}")

    if debug.get('prefilled'):
        print(f"Pre-filled from narrative: {debug['prefilled']}")

    if 'intent' in debug:
        print(f"Intent: {debug['intent']} ({debug.get('intent_source', 'patterns')})")

    for field_path, outcome in debug.get('validation', {}).items():
        print(f"Validation {field_path}: {outcome['status']} "
              f"(tier={outcome['tier']}, reason={outcome['reason']}, value={outcome['value']!r})")

    if debug.get('skipped'):
        print(f"Skipped: {debug['skipped']}")

    if debug.get('force_skipped'):
        print(f"Force-skipped: {debug['force_skipped']}")

    print(f"Missing fields: {metadata['missing_fields']}")
    print(f"Questions asked: {metadata['questions_asked']}")
    print(f"Port calls: {debug.get('port_calls', [])}")

    for error in debug.get('errors', []):
        print(f"ERROR ({error['operation']}): {error['error']}")

    print("-" * 60)


def main():
    """Run console test"""
    arg_parser = argparse.ArgumentParser(description="Complaint intake console harness")
    arg_parser.add_argument("--model", default=MODEL_NAME, help="HuggingFace model name")
    arg_parser.add_argument("--no-4bit", action="store_true", help="Load the model at full precision")
    arg_parser.add_argument("--debug", action="store_true", help="Print per-turn debug info")
    args = arg_parser.parse_args()

    print_separator()
    print(f"{HOSPITAL_CONFIG['short_name']} COMPLAINT INTAKE - CONSOLE TEST")
    print_separator()
    print("\nInitializing modules (this may take 30 seconds)...")

    try:
        hf_client = HuggingFaceClient(
            model_name=args.model,
            load_in_4bit=LOAD_IN_4BIT and not args.no_4bit,
            device=MODEL_DEVICE,
        )

        dm = DialogueManager(
            language_port=HuggingFaceLanguagePort(hf_client, hospital_name=HOSPITAL_CONFIG['name']),
            relevance_engine=FieldRelevanceEngine(),
            composer=QuestionComposer(),
            validator=ResponseValidator(),
            port_timeout=PORT_TIMEOUT_SECONDS,
        )
        persistence = ComplaintPersistence(COMPLAINTS_FILE)
        metrics = ConversationMetrics(METRICS_FILE)

        print("\nModules initialized successfully!")

    except Exception as e:
        print(f"\nFailed to initialize: {e}")
        import traceback
        traceback.print_exc()
        return 1

    print_separator()
    print("DESCRIBE YOUR COMPLAINT")
    print_separator()
    print("Type 'quit', 'exit', or 'stop' to end early\n")

    # State is external - we hold it in this loop
    state = None
    latency_ms = 0.0
    completed = False

    while True:
        try:
            user_input = input("> ").strip()

            if not user_input:
                print("Please enter a response.\n")
                continue

            if user_input.lower() in EXIT_COMMANDS:
                print("\nSession ended early by user")
                break

            start_time = time.time()
            turn_result = dm.handle_turn(user_input, state)
            latency_ms += (time.time() - start_time) * 1000
            state = turn_result.state

            print(f"\nSystem: {turn_result.system_output}\n")

            metadata = turn_result.turn_metadata
            print(f"[Turn {metadata['turn_count']}, Phase {metadata['phase']}]")

            if args.debug:
                print_debug_info(turn_result)

            if turn_result.is_complete:
                print_separator()
                print("COMPLAINT SUBMITTED")
                print_separator()

                entry = persistence.save_complaint(state.session_id, state.record, state.transcript)

                print(f"\nSaved to: {persistence.file_path}")
                print(f"  - Session: {entry['sessionId']}")
                print(f"  - Category: {state.record.get('domain')}/{state.record.get('subcategory')}")
                print(f"  - Urgency: {entry['urgency']}")
                print(f"  - Questions asked: {metadata['questions_asked']}")

                metrics.record_conversation(state, latency_ms)
                completed = True
                break

        except KeyboardInterrupt:
            print("\n\nSession interrupted by user (Ctrl+C)")
            break

        except EOFError:
            break

    if state is not None and not completed:
        metrics.record_conversation(state, latency_ms)

    dm.close()
    print_separator()
    print("Console test complete")
    print_separator()
    return 0


if __name__ == '__main__':
    sys.exit(main())
