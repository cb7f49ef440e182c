"""
PlantCare Assistant: Telegram Bot.

Telegram is the user interface of the assistant. Plant and task management
flow through the commands below, and due care reminders are delivered as
chat messages by the bot's job queue.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
import re
from datetime import time as dt_time
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)

from src.config import settings
from src.core.errors import NotFoundError, ValidationError
from src.core.interval_parser import MAX_INTERVAL_DAYS
from src.core.task_queries import MAX_WINDOW_DAYS
from src.data.models import CareBenchmark, NewPlant, Task, TaskType
from src.ports.store_port import StoreIOError

if TYPE_CHECKING:
    from src.core.due_dates import Clock
    from src.core.plant_service import PlantCareService
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_TASK_ICONS = {
    TaskType.WATER: "💧",
    TaskType.LIGHT: "☀️",
    TaskType.PRUNE: "✂️",
    TaskType.OTHER: "🌱",
}


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, Any]],
) -> Callable[..., Coroutine[Any, Any, Any]]:
    """Decorator that silently ignores messages from unauthorized users.

    Does NOT send any response to strangers: the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> Any:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return None  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _service(context: ContextTypes.DEFAULT_TYPE) -> PlantCareService:
    return context.bot_data["plant_service"]


def _error_text(exc: Exception) -> str:
    """User-facing text for a failed operation."""
    if isinstance(exc, (ValidationError, NotFoundError)):
        return str(exc)
    if isinstance(exc, StoreIOError):
        return "Couldn't save your changes. Please try again."
    return "Something went wrong. Please try again."


def format_task(task: Task, clock: Clock) -> str:
    """One line per task: id, icon, title and local due time."""
    due = clock.localize(task.due_date)
    icon = _TASK_ICONS.get(task.type, "🌱")
    return f"`{task.id}` {icon} {task.title}: {due:%a %d %b %H:%M}"


async def _reply_tasks(
    update: Update, tasks: list[Task], clock: Clock, header: str, empty: str,
) -> None:
    if not tasks:
        await update.message.reply_text(empty)
        return
    lines = [f"*{header}*\n"]
    lines.extend(format_task(t, clock) for t in tasks)
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start: welcome message."""
    await update.message.reply_text(
        "Welcome to *PlantCare Assistant*!\n\n"
        "I keep track of your plants and remind you when they need care:\n"
        "• Use /addplant to add a plant and its watering schedule\n"
        "• Use /today and /upcoming to see what's due\n"
        "• Use /done to mark a task complete, the next one is planned for you\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help: list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/plants: List your plants\n"
        "/addplant: Add a plant\n"
        "/deleteplant: Delete a plant and all its tasks\n"
        "/tasks <plant\\_id>: Pending tasks of one plant\n"
        "/today: Tasks due today\n"
        "/upcoming [days]: Tasks due soon\n"
        "/overdue: Tasks past their due date\n"
        "/done <task\\_id>: Mark a task as done\n"
        "/stats: Pending and completed tasks per plant\n"
        "/reminders: Scheduled reminders\n"
        "/testreminder: Send a test reminder in a few seconds\n"
        "/resync: Rebuild all reminders\n"
        "/sample [replace]: Load demo plants\n"
        "/clear: Delete all plants, tasks and reminders\n"
        "/help: Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_plants(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /plants: list all plants."""
    service = _service(context)
    plants = service.plants
    if not plants:
        await update.message.reply_text("No plants yet. Use /addplant or /sample to get started.")
        return

    lines = ["*Your plants:*\n"]
    for plant in plants:
        pending = len(service.get_tasks_for_plant(plant.id))
        watering = f", watering: {plant.watering}" if plant.watering else ""
        lines.append(f"`{plant.id}` {plant.name} ({pending} pending task(s){watering})")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_tasks(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /tasks <plant_id>: pending tasks of one plant."""
    args = context.args
    if not args:
        await update.message.reply_text("Usage: /tasks <plant_id>\nUse /plants to see IDs.")
        return
    try:
        plant_id = int(args[0])
    except ValueError:
        await update.message.reply_text("Invalid plant ID. Use /plants to see valid IDs.")
        return

    service = _service(context)
    try:
        plant = service.get_plant(plant_id)
    except NotFoundError as exc:
        await update.message.reply_text(str(exc))
        return

    await _reply_tasks(
        update, service.get_tasks_for_plant(plant_id), service.clock,
        f"Tasks for {plant.name}:", f"No pending tasks for {plant.name}.",
    )


@authorized_only
async def cmd_today(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /today: tasks due today."""
    service = _service(context)
    await _reply_tasks(
        update, service.get_due_today_tasks(), service.clock,
        "Due today:", "Nothing due today. 🌿",
    )


@authorized_only
async def cmd_upcoming(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /upcoming [days]: tasks due within the window."""
    days: int | None = None
    if context.args:
        try:
            days = int(context.args[0])
            if days < 0 or days > MAX_WINDOW_DAYS:
                raise ValueError
        except ValueError:
            await update.message.reply_text(
                f"Please give a number of days between 0 and {MAX_WINDOW_DAYS}, e.g. /upcoming 7",
            )
            return

    service = _service(context)
    await _reply_tasks(
        update, service.get_upcoming_tasks(days), service.clock,
        "Upcoming tasks:", "No upcoming tasks.",
    )


@authorized_only
async def cmd_overdue(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /overdue: tasks past their due date."""
    service = _service(context)
    await _reply_tasks(
        update, service.get_overdue_tasks(), service.clock,
        "Overdue:", "Nothing overdue. 🌿",
    )


@authorized_only
async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <task_id>: complete a task and plan the next one."""
    args = context.args
    if not args:
        await update.message.reply_text("Usage: /done <task_id>\nUse /today or /tasks to see IDs.")
        return
    try:
        task_id = int(args[0])
    except ValueError:
        await update.message.reply_text("Invalid task ID. Use /today or /tasks to see valid IDs.")
        return

    service = _service(context)
    try:
        result = await service.complete_task(task_id)
    except (NotFoundError, StoreIOError) as exc:
        logger.error("/done error for task #%d: %s", task_id, exc)
        await update.message.reply_text(_error_text(exc))
        return

    msg = f"✅ Marked '*{result.completed.title}*' as done."
    if result.successor is not None:
        due = service.clock.localize(result.successor.due_date)
        msg += f"\nNext one: {due:%a %d %b %H:%M}"
        if not result.reminder_scheduled:
            msg += " (no reminder set)"
    await update.message.reply_text(msg, parse_mode="Markdown")


@authorized_only
async def cmd_deleteplant(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /deleteplant: show plants as buttons to pick from."""
    plants = _service(context).plants
    if not plants:
        await update.message.reply_text("No plants to delete.")
        return

    keyboard = [
        [InlineKeyboardButton(p.name, callback_data=f"delplant:{p.id}")]
        for p in plants
    ]
    await update.message.reply_text(
        "Which plant do you want to delete?",
        reply_markup=InlineKeyboardMarkup(keyboard),
    )


async def _handle_deleteplant_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle the inline button tap to delete a plant."""
    query = update.callback_query
    await query.answer()

    # Verify the user is authorized
    user = query.from_user
    if user is None or user.id not in settings.ALLOWED_USER_IDS:
        return

    plant_id = int(query.data.split(":")[1])
    service = _service(context)
    try:
        plant = service.get_plant(plant_id)
        removed = await service.delete_plant(plant_id)
    except (NotFoundError, StoreIOError) as exc:
        logger.error("deleteplant callback error: %s", exc)
        await query.edit_message_text(_error_text(exc))
        return

    await query.edit_message_text(
        f"✅ Plant *{plant.name}* deleted with {removed} task(s).", parse_mode="Markdown",
    )


@authorized_only
async def cmd_reminders(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /reminders: list scheduled reminders."""
    service = _service(context)
    reminders = await service.list_scheduled_reminders()
    if not reminders:
        await update.message.reply_text("No reminders scheduled.")
        return

    lines = [f"*{len(reminders)} reminder(s) scheduled:*\n"]
    for r in reminders[:20]:
        when = service.clock.localize(r.trigger)
        name = r.content.data.get("plant_name", "")
        lines.append(f"• {when:%a %d %b %H:%M}  {r.content.title} {name}")
    if len(reminders) > 20:
        lines.append(f"…and {len(reminders) - 20} more")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_resync(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /resync: rebuild every reminder from the stored tasks."""
    try:
        scheduled = await _service(context).resync_reminders()
    except StoreIOError as exc:
        logger.error("/resync error: %s", exc)
        await update.message.reply_text(_error_text(exc))
        return
    await update.message.reply_text(f"🔄 Reminders rebuilt: {scheduled} scheduled.")


@authorized_only
async def cmd_sample(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /sample [replace]: load the demo plants.

    Without an argument the collection must be empty; "replace" wipes the
    existing data first.
    """
    replace = bool(context.args) and context.args[0].lower() == "replace"
    try:
        loaded = await _service(context).load_sample_data(replace=replace)
    except (ValidationError, StoreIOError) as exc:
        logger.error("/sample error: %s", exc)
        await update.message.reply_text(_error_text(exc))
        return
    if loaded:
        await update.message.reply_text("🌱 Sample plants added. Try /plants or /upcoming.")
    else:
        await update.message.reply_text(
            "You already have plants, sample data was not loaded.\n"
            "Use /sample replace to swap them for the demo plants.",
        )


@authorized_only
async def cmd_stats(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /stats: pending and completed task counts per plant."""
    stats = _service(context).get_plant_stats()
    if not stats:
        await update.message.reply_text("No plants yet. Use /addplant or /sample to get started.")
        return

    pending = sum(s.pending for s in stats)
    completed = sum(s.completed for s in stats)
    lines = [f"*Garden stats:* {len(stats)} plant(s), {pending} pending, {completed} done\n"]
    for s in stats:
        lines.append(f"• {s.plant.name}: {s.pending} pending, {s.completed} done")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_testreminder(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /testreminder: schedule a reminder a few seconds from now."""
    if await _service(context).send_test_reminder():
        await update.message.reply_text("🔔 Test reminder scheduled, it should arrive in a few seconds.")
    else:
        await update.message.reply_text("Couldn't schedule a test reminder. Check the logs.")


@authorized_only
async def cmd_clear(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /clear: ask for confirmation before wiping all data."""
    keyboard = [[
        InlineKeyboardButton("Delete everything", callback_data="clear:yes"),
        InlineKeyboardButton("Cancel", callback_data="clear:no"),
    ]]
    await update.message.reply_text(
        "This deletes all plants, tasks and reminders. Are you sure?",
        reply_markup=InlineKeyboardMarkup(keyboard),
    )


async def _handle_clear_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle the confirmation buttons of /clear."""
    query = update.callback_query
    await query.answer()

    user = query.from_user
    if user is None or user.id not in settings.ALLOWED_USER_IDS:
        return

    if query.data != "clear:yes":
        await query.edit_message_text("Nothing was deleted.")
        return

    try:
        removed = await _service(context).clear_all_data()
    except StoreIOError as exc:
        logger.error("clear callback error: %s", exc)
        await query.edit_message_text(_error_text(exc))
        return

    await query.edit_message_text(f"🗑 All data cleared: {removed} plant(s) removed.")


# ---------------------------------------------------------------------------
# /addplant conversation
# ---------------------------------------------------------------------------

# ConversationHandler states for /addplant
(
    PLANT_NAME,
    PLANT_PICK,
    PLANT_INTERVAL,
) = range(3)

_CATALOG_RESULTS = 5
# "7", "7-10", "7 - 10"
_INTERVAL_RE = re.compile(r"^\d+(\s*-\s*\d+)?$")


@authorized_only
async def cmd_addplant(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Handle /addplant: start plant creation conversation."""
    await update.message.reply_text("What's the plant called? (e.g., 'Monstera')")
    return PLANT_NAME


async def addplant_name(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Receive the name, offer catalog matches or ask for an interval."""
    name = update.message.text.strip()
    if not name:
        await update.message.reply_text("Please enter a name.")
        return PLANT_NAME
    context.user_data["plant_name"] = name

    matches = await _service(context).search_catalog(name)
    if not matches:
        await update.message.reply_text(
            "How often should it be watered, in days? (e.g., '7' or '7-10')",
        )
        return PLANT_INTERVAL

    keyboard = [
        [InlineKeyboardButton(m.name or f"#{m.catalog_id}", callback_data=f"catalog:{m.catalog_id}")]
        for m in matches[:_CATALOG_RESULTS]
    ]
    keyboard.append([InlineKeyboardButton("None of these", callback_data="catalog:manual")])
    await update.message.reply_text(
        "Which one is it?", reply_markup=InlineKeyboardMarkup(keyboard),
    )
    return PLANT_PICK


async def addplant_pick(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Handle the catalog button tap."""
    query = update.callback_query
    await query.answer()

    choice = query.data.split(":", 1)[1]
    if choice == "manual":
        await query.edit_message_text(
            "How often should it be watered, in days? (e.g., '7' or '7-10')",
        )
        return PLANT_INTERVAL

    name = context.user_data.get("plant_name")
    try:
        plant = await _service(context).add_plant_from_catalog(int(choice), name)
    except (ValidationError, StoreIOError) as exc:
        logger.error("Failed to add catalog plant #%s: %s", choice, exc)
        await query.edit_message_text(_error_text(exc))
        _clear_plant_data(context)
        return ConversationHandler.END

    await query.edit_message_text(_added_text(plant.name, plant.watering), parse_mode="Markdown")
    _clear_plant_data(context)
    return ConversationHandler.END


async def addplant_interval(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Receive the watering interval and create the plant."""
    text = update.message.text.strip()
    if not _INTERVAL_RE.match(text) or int(re.split(r"\s*-\s*", text)[0]) > MAX_INTERVAL_DAYS:
        await update.message.reply_text(
            f"Please enter a number of days up to {MAX_INTERVAL_DAYS} (e.g., 7 or 7-10).",
        )
        return PLANT_INTERVAL

    data = NewPlant(
        name=context.user_data.get("plant_name", ""),
        watering_benchmark=CareBenchmark(value=text.replace(" ", ""), unit="days"),
    )
    try:
        plant = await _service(context).add_plant(data)
    except (ValidationError, StoreIOError) as exc:
        logger.error("Failed to add plant: %s", exc)
        await update.message.reply_text(_error_text(exc))
        _clear_plant_data(context)
        return ConversationHandler.END

    await update.message.reply_text(_added_text(plant.name, None), parse_mode="Markdown")
    _clear_plant_data(context)
    return ConversationHandler.END


async def addplant_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Cancel plant creation."""
    _clear_plant_data(context)
    await update.message.reply_text("Plant creation cancelled.")
    return ConversationHandler.END


def _added_text(name: str, watering: str | None) -> str:
    msg = f"✅ Plant *{name}* added and its watering tasks are planned."
    if watering:
        msg += f"\nWatering: {watering}"
    return msg + "\nUse /plants to see it."


def _clear_plant_data(context: ContextTypes.DEFAULT_TYPE) -> None:
    context.user_data.pop("plant_name", None)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_service(app: Application, notifier: NotificationPort) -> PlantCareService:
    """Wire the store, reminder service and catalog into a PlantCareService."""
    from src.adapters.job_queue_reminders import JobQueueReminderService
    from src.adapters.sqlite_store import SQLiteStore
    from src.core.due_dates import Clock
    from src.core.plant_service import PlantCareService
    from src.core.reminder_reconciler import ReminderReconciler
    from src.core.task_lifecycle import TaskLifecycleManager
    from src.data.db import PlantDB
    from src.integrations.perenual import PerenualCatalog

    clock = Clock(settings.TIMEZONE)
    reminder_time = dt_time(hour=settings.REMINDER_HOUR, minute=settings.REMINDER_MINUTE)
    store = SQLiteStore(PlantDB(settings.DATABASE_PATH))
    reminders = JobQueueReminderService(app.job_queue, notifier, settings.ALLOWED_USER_IDS)
    reconciler = ReminderReconciler(
        reminders,
        clock,
        reminder_time=reminder_time,
        timeout_seconds=settings.REMINDER_TIMEOUT_SECONDS,
    )
    lifecycle = TaskLifecycleManager(
        store,
        reconciler,
        clock,
        horizon_days=settings.TASK_HORIZON_DAYS,
        default_interval_days=settings.DEFAULT_INTERVAL_DAYS,
        reminder_time=reminder_time,
    )
    catalog = PerenualCatalog(settings.PERENUAL_API_KEY, settings.PERENUAL_API_URL)
    return PlantCareService(
        store,
        lifecycle,
        reconciler,
        clock,
        catalog=catalog,
        upcoming_window_days=settings.UPCOMING_WINDOW_DAYS,
        reminder_time=reminder_time,
    )


async def _post_init(app: Application) -> None:
    """Load state and rebuild the in-memory reminder jobs from the store."""
    service: PlantCareService = app.bot_data["plant_service"]
    await service.start()


def build_app(
    service: PlantCareService | None = None,
    notifier: NotificationPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        service: Plant service. Defaults to the SQLite + JobQueue wiring.
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).post_init(_post_init).build()

    if notifier is None:
        from src.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    if service is None:
        service = build_service(app, notifier)

    # Store the service in bot_data for handler access
    app.bot_data["plant_service"] = service
    app.bot_data["notifier"] = notifier

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("plants", cmd_plants))
    app.add_handler(CommandHandler("tasks", cmd_tasks))
    app.add_handler(CommandHandler("today", cmd_today))
    app.add_handler(CommandHandler("upcoming", cmd_upcoming))
    app.add_handler(CommandHandler("overdue", cmd_overdue))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CommandHandler("deleteplant", cmd_deleteplant))
    app.add_handler(CommandHandler("reminders", cmd_reminders))
    app.add_handler(CommandHandler("resync", cmd_resync))
    app.add_handler(CommandHandler("sample", cmd_sample))
    app.add_handler(CommandHandler("stats", cmd_stats))
    app.add_handler(CommandHandler("testreminder", cmd_testreminder))
    app.add_handler(CommandHandler("clear", cmd_clear))
    app.add_handler(CallbackQueryHandler(_handle_deleteplant_callback, pattern=r"^delplant:\d+$"))
    app.add_handler(CallbackQueryHandler(_handle_clear_callback, pattern=r"^clear:(yes|no)$"))

    # /addplant conversation handler
    _text = filters.TEXT & ~filters.COMMAND
    addplant_conv = ConversationHandler(
        entry_points=[CommandHandler("addplant", cmd_addplant)],
        states={
            PLANT_NAME: [MessageHandler(_text, addplant_name)],
            PLANT_PICK: [CallbackQueryHandler(addplant_pick, pattern=r"^catalog:")],
            PLANT_INTERVAL: [MessageHandler(_text, addplant_interval)],
        },
        fallbacks=[CommandHandler("cancel", addplant_cancel)],
    )
    app.add_handler(addplant_conv)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting PlantCare Assistant bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
