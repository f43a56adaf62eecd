# src/task_planner/core/messages.py

"""User-facing copy. Templates use str.format with named fields."""

from __future__ import annotations

from typing import Final

WELCOME: Final[str] = """
Welcome to the task planner! 🐱 📝

⚠️ Please sign in first:
/registration - create an account
/login - log in to an existing account
Or use the buttons below.

Once you are signed in, all planner features become available.
""".strip()

START: Final[str] = """
Welcome to the task planner! 🐱 📝
I can keep your tasks organized.
Feel free to use the buttons.

Commands:
/add - add a task
/tasks - show your tasks
/done - mark a task as done
/dTask - show completed tasks
/delete - delete a task
/expand - expand a task into subtasks
/export - send your tasks as a file
/import - load tasks from a file
/exit - log out
/help - help

Subtask commands (inside /expand):
/add_subtask - add a subtask
/delete_subtask - delete a subtask
/edit_subtask - edit a subtask
/add_subtasks_with_gpt - let the AI suggest subtasks
/finish_expand - finish expanding the task
""".strip()

HELP: Final[str] = """
How to use the planner 😊 📝
Buttons:
📝 Registration
Log in
➕ Add task
📝 Show tasks
✔ Done
✅ Completed tasks
✘ Delete
🔍 Expand task
Export - send your tasks as a file
Import - load tasks from a file
Log out
Help

Example:
➕ Add task
- Water plants
- Task "Water plants" added!

➕ Add task
- Water plants
- Task "Water plants" already exists!

📝 Show tasks
- 📝 Your tasks:
  1. Water plants

✔ Done
- Water plants
- ✅ Task "Water plants" completed!

Export
- Enter a file name for the export
- tasks_list
- (the bot sends "tasks_list.json")

Import
- Send a JSON file with your tasks
- Tasks imported! Check them with /tasks and /dTask
""".strip()

UNKNOWN_COMMAND: Final[str] = "Unknown command.\nType /help to see the available commands."
INTERNAL_ERROR: Final[str] = "Something went wrong. Please try again."
STORE_ERROR: Final[str] = "Storage error, the action was not completed. Please try again."
NOT_AUTHENTICATED: Final[str] = "You are not logged in. Please log in with /login."

# ---- Authentication ----

REGISTRATION_PROMPT: Final[str] = "📝 New account registration\nEnter a username:"
LOGIN_PROMPT: Final[str] = "🔑 Log in\nEnter your username:"
USERNAME_EMPTY: Final[str] = "Oops, looks like you forgot the username.\nEnter a username:"
PASSWORD_PROMPT: Final[str] = "✅ Great! Now enter the password:"
PASSWORD_EMPTY: Final[str] = "The password cannot be empty.\nEnter the password:"
USERNAME_TAKEN: Final[str] = "A user with this username already exists.\nPick another username or log in with /login."
USERNAME_NOT_FOUND: Final[str] = "User '{username}' not found.\nCheck the username or register with /registration."
REGISTRATION_FAILED: Final[str] = "Registration failed.\nTry again: /registration"
REGISTRATION_OK: Final[str] = "✅ Registration completed!\nWelcome, {username}!\n\n" + START
LOGIN_OK: Final[str] = "✅ Logged in!\nWelcome back, {username}!\n\n" + START
INVALID_CREDENTIALS: Final[str] = "Wrong password. Please start again with /login."
AUTH_ERROR: Final[str] = "Authentication error. Please try again."
LOGOUT_OK: Final[str] = (
    "✅ You have logged out.\n\n"
    "To continue:\n"
    "/registration - create an account\n"
    "/login - log in to an existing account"
)

# ---- Task operations ----

ADD_PROMPT: Final[str] = "Enter the task to add:\nFor example: Buy milk"
DELETE_PROMPT: Final[str] = "Enter the task to delete:\nFor example: Buy milk"
DONE_PROMPT: Final[str] = "Enter the task to mark as done:\nFor example: Buy milk"
EXPORT_PROMPT: Final[str] = "Enter a file name for the export\nFor example: 'list'"

TASK_ADDED: Final[str] = 'Task "{text}" added!'
TASK_EXISTS: Final[str] = 'Task "{text}" already exists!'
TASK_DELETED: Final[str] = '🗑️ Task "{text}" deleted!'
TASK_DONE: Final[str] = '✅ Task "{text}" completed!'
TASK_NOT_FOUND: Final[str] = 'Task "{text}" not found!'
EXPORTED: Final[str] = "Your tasks were exported to file: {filename}"

TASKS_EMPTY: Final[str] = "📝 Your task list is empty!"
TASKS_HEADER: Final[str] = "📝 Your tasks:"
COMPLETED_EMPTY: Final[str] = "✅ No completed tasks yet!"
COMPLETED_HEADER: Final[str] = "✅ Completed tasks:"

IMPORT_HINT: Final[str] = "To import, send a JSON file with your tasks."
IMPORT_OK: Final[str] = (
    "Tasks imported: {current} current, {completed} completed.\n"
    "Check them with /tasks and /dTask"
)
IMPORT_FORMAT_ERROR: Final[str] = (
    'Could not read the file. Expected JSON like {"current_tasks": [...], "completed_tasks": [...]}.'
)

# ---- Expansion / subtasks ----

EXPAND_PICK: Final[str] = "Which task do you want to expand? Send /expand <number> or /expand <task text>.\n{tasks}"
EXPAND_NOT_FOUND: Final[str] = "Task not found. Use /tasks to see the list."
SUBTASK_MENU: Final[str] = """
Expanding task "{task}". Choose an action:
/add_subtasks_with_gpt - let the AI suggest subtasks
/add_subtask - add a subtask
/delete_subtask - delete a subtask
/edit_subtask - edit a subtask
/finish_expand - finish expanding the task
""".strip()
SUBTASK_USAGE: Final[str] = "Use the buttons to work with subtasks, or send /finish_expand to leave."
SUBTASK_ADD_PROMPT: Final[str] = "Great! Write the subtask to add:"
SUBTASK_DELETE_PROMPT: Final[str] = "Great! Write the subtask to delete:"
SUBTASK_EDIT_PROMPT: Final[str] = "Great! Write the subtask to edit:"
SUBTASK_REPLACE_PROMPT: Final[str] = "Write the new wording:"
SUBTASK_ADDED: Final[str] = "Subtask added."
SUBTASK_EXISTS: Final[str] = "Subtask already exists."
SUBTASK_DELETED: Final[str] = "Subtask deleted."
SUBTASK_EDITED: Final[str] = "Subtask changed."
SUBTASK_NOT_FOUND: Final[str] = "Subtask not found."
SUBTASK_NONE_TO_DELETE: Final[str] = "There are no subtasks to delete."
SUBTASK_NONE_TO_EDIT: Final[str] = "There are no subtasks to edit."
SUBTASK_PICK_DELETE: Final[str] = "Great! Pick the subtask to delete:\n{subtasks}"
SUBTASK_PICK_EDIT: Final[str] = "Great! Pick the subtask to edit:\n{subtasks}"
SUBTASK_TASK_GONE: Final[str] = "The task is no longer in your list. Expansion finished."
EXPAND_FINISHED: Final[str] = "Subtask editing finished! You can check your task list with /tasks."

AI_DETAILS_PROMPT: Final[str] = (
    "Describe details and wishes for the task so the suggested subtasks fit better.\n"
    'For example: "Painting with brushes, I want to paint nature"'
)
AI_DETAILS_EMPTY: Final[str] = "Please write some details about the task:"
AI_REVIEW: Final[str] = (
    "🤖 Subtasks suggested by the AI:\n\n{subtasks}\n\n"
    "Check the list. If it looks right press [Save], otherwise [Discard]."
)
AI_REVIEW_USAGE: Final[str] = "Press [Save] to keep the suggested subtasks or [Discard] to drop them."
AI_EMPTY_RESULT: Final[str] = "❌ The AI did not suggest any subtasks. Try describing the task differently."
AI_FAILED: Final[str] = "❌ Could not generate subtasks: {error}"
AI_SAVED: Final[str] = "✅ Subtasks saved ({count} new)! Check your task list with /tasks."
AI_DISCARDED: Final[str] = "🗑️ Suggested subtasks discarded. Make the request more specific next time."

AI_SYSTEM_PROMPT: Final[str] = """
You are a planning assistant that breaks a task into small actionable subtasks.
Reply with the subtasks only, one per line, without numbering, bullets or extra commentary.
Match the user's language.
""".strip()

AI_USER_PROMPT: Final[str] = 'Break the task "{task}" into subtasks. Details from the user: {details}'


def numbered(items: list[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))
