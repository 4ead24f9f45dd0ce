import argparse
import getpass
import json
import logging
import os
import sys

import yaml
from dotenv import load_dotenv

from eduplan.catalog import TEST_KINDS
from eduplan.database import get_engine, init_db
from eduplan.errors import EduPlanError
from eduplan.factory import build_camera, build_controller
from eduplan.models import CaptureIntent, LessonPlanRequest
from eduplan.web.config_utils import save_api_key_to_env


def _prompt_for_credential(config):
    """CLI credential selection: ask for a Gemini key and store it in .env."""

    def prompt():
        print("A IA precisa de uma chave de acesso (GEMINI_API_KEY).")
        key = getpass.getpass("GEMINI_API_KEY: ").strip()
        if not key:
            print("Nenhuma chave informada.")
            return
        save_api_key_to_env("GEMINI_API_KEY", key, ".env")
        os.environ["GEMINI_API_KEY"] = key
        if config.get("llm", {}).get("provider", "mock") == "mock":
            config.setdefault("llm", {})["provider"] = "gemini"
        print("Chave salva. Execute o comando novamente.")

    return prompt


def _make_controller(config, args, camera=None):
    engine = get_engine(config.get("paths", {}).get("database_file", "eduplan.db"))
    init_db(engine)
    controller = build_controller(
        config,
        engine,
        session_scope={},
        on_credential_request=_prompt_for_credential(config),
        camera=camera,
    )
    passcode = args.passcode or os.environ.get("EDUPLAN_PASSCODE") or getpass.getpass("Senha do Professor: ")
    if not controller.login(passcode):
        print("Error: senha inválida.")
        sys.exit(1)
    return controller


def _finish(controller, result):
    """Print any notice and exit non-zero when the operation produced nothing."""
    if controller.state.notice:
        print(f"Error: {controller.state.notice}")
    if result is None:
        sys.exit(1)


def _print_plan(plan):
    print(f"\n{plan.title}  [{plan.id}]")
    print(f"{plan.subject} • {plan.grade} • {plan.planning_type}")
    if plan.bncc_codes:
        print(f"BNCC: {', '.join(plan.bncc_codes)}")
    print(f"\n{plan.content}\n")
    for obj in plan.objectives:
        print(f"  - {obj}")
    if plan.test:
        print(f"\nAvaliação: {len(plan.test.questions)} questões")


def _select_plan(controller, plan_id):
    try:
        controller.select_plan(plan_id)
    except KeyError:
        print(f"Error: plano não encontrado: {plan_id}")
        sys.exit(1)


def handle_plan(config, args):
    """Handles the "plan" command."""
    controller = _make_controller(config, args)
    request = LessonPlanRequest(
        subject=args.subject,
        grade=args.grade,
        topic=args.topic,
        duration=args.duration,
        planning_type=args.planning_type,
    )
    plan = controller.submit_plan_request(request)
    if plan:
        _print_plan(plan)
    _finish(controller, plan)


def handle_test(config, args):
    """Handles the "test" command."""
    controller = _make_controller(config, args)
    _select_plan(controller, args.plan_id)
    plan = controller.request_test(args.kind)
    if plan:
        for q in plan.test.questions:
            print(f"{q.number}. {q.question}")
            for letter, option in zip("ABCDEFGH", q.options or []):
                print(f"   {letter}) {option}")
        print("\nGabarito: " + ", ".join(f"Q{q.number}={q.correct_answer}" for q in plan.test.questions))
    _finish(controller, plan)


def handle_history(config, args):
    """Handles the "history" command."""
    controller = _make_controller(config, args)
    plans = controller.state.history
    if args.json:
        print(json.dumps([p.to_dict() for p in plans], ensure_ascii=False, indent=2))
        return
    for plan in plans:
        test_note = " (com avaliação)" if plan.test else ""
        print(f"{plan.id}  {plan.title}  [{plan.subject} • {plan.planning_type}]{test_note}")


def handle_capture(config, args):
    """Handles the "capture" command (device camera or an image file)."""
    camera = build_camera(config, source="browser" if args.image else "device")
    controller = _make_controller(config, args, camera=camera)
    if args.plan_id:
        _select_plan(controller, args.plan_id)

    if not controller.open_camera(args.intent):
        _finish(controller, None)

    frame_bytes = None
    if args.image:
        with open(args.image, "rb") as f:
            frame_bytes = f.read()
    else:
        input("Câmera aberta. Pressione Enter para capturar...")

    result = controller.capture(frame_bytes)
    if args.intent == CaptureIntent.EXTRACT_TOPIC.value and result:
        print(f"Texto extraído: {result}")
    elif result:
        print(f"Nota: {result.score}\n{result.feedback}")
    _finish(controller, result)


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(description="EduPlan AI CLI.")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml.")
    parser.add_argument("--passcode", help="Teacher passcode (or set EDUPLAN_PASSCODE).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- Serve Command ---
    parser_serve = subparsers.add_parser("serve", help="Run the web app (development server).")
    parser_serve.add_argument("--host", default="127.0.0.1")
    parser_serve.add_argument("--port", type=int, default=5000)

    # --- Plan Command ---
    parser_plan = subparsers.add_parser("plan", help="Generate a new lesson plan.")
    parser_plan.add_argument("--topic", required=True, help="Content or BNCC skill.")
    parser_plan.add_argument("--subject", default="Matemática")
    parser_plan.add_argument("--grade", default="6º Ano - Fundamental II")
    parser_plan.add_argument("--duration", default="50 minutos")
    parser_plan.add_argument("--planning-type", default="Individual")

    # --- Test Command ---
    parser_test = subparsers.add_parser("test", help="Generate a test for a saved plan.")
    parser_test.add_argument("plan_id", help="Plan id (see the history command).")
    parser_test.add_argument("--kind", choices=sorted(TEST_KINDS), default="objective")

    # --- History Command ---
    parser_history = subparsers.add_parser("history", help="List saved lesson plans.")
    parser_history.add_argument("--json", action="store_true", help="Print the full history as JSON.")

    # --- Capture Command ---
    parser_capture = subparsers.add_parser("capture", help="Capture a frame for OCR or grading.")
    parser_capture.add_argument(
        "--intent", choices=[i.value for i in CaptureIntent], default=CaptureIntent.EXTRACT_TOPIC.value
    )
    parser_capture.add_argument("--plan-id", help="Plan whose test is graded (grade-test).")
    parser_capture.add_argument("--image", help="Use an image file instead of the camera.")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        with open(args.config, "r") as f:
            config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        print(f"Error: {args.config} not found.")
        return

    if args.command == "serve":
        from eduplan.web.app import create_app

        app = create_app(config)
        app.config["CONFIG_PATH"] = args.config
        app.run(host=args.host, port=args.port)
        return

    handlers = {
        "plan": handle_plan,
        "test": handle_test,
        "history": handle_history,
        "capture": handle_capture,
    }
    try:
        handlers[args.command](config, args)
    except EduPlanError as e:
        print(f"Error: {e.user_message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
