"""
utils/constants.py

Purpose: Centralized static content

- All user-facing messages
- Button labels
- Callback data prefixes

(Prevents hardcoding across the codebase)
"""

# ============================================================
# BUTTON LABELS (reply keyboard)
# ============================================================

BUTTON_MESSAGE_ADMIN = "💬 Message admin"
BUTTON_APPLY = "📝 Apply"
BUTTON_CANCEL = "❌ Cancel"
BUTTON_BACK_TO_MENU = "🏠 Back to menu"
BUTTON_SUBMIT_APPLICATION = "✅ Submit application"

# Inline buttons on the admin summary post
BUTTON_APPROVE = "✅ Approve"
BUTTON_REJECT = "❌ Reject"

# Callback data: "app:<approve|reject>:<application id>"
DECISION_CALLBACK_PREFIX = "app"

# ============================================================
# WELCOME & MENU
# ============================================================

WELCOME_MESSAGE = """👋 Welcome to the Student Club Registration Bot!

Choose an option below:"""

CHOOSE_BUTTON_MESSAGE = "⚠️ Please choose one of the buttons below:"

START_REQUIRED_MESSAGE = "Send /start to begin."

CANCELLED_MESSAGE = "❌ Cancelled. You are back in the main menu."

# ============================================================
# MESSAGE ADMIN FLOW
# ============================================================

MESSAGE_ADMIN_PROMPT = """📝 You can now send your message to admin. You can send:
• Text messages
• Photos
• Audio files
• Documents
• Videos

Send your message now:"""

MESSAGE_SENT = "✅ Your message has been sent to admin!"

ADMIN_REPLY_PREFIX = "📨 Admin reply:"
ADMIN_REPLY_EMPTY = "📨 Admin sent you a reply."

# ============================================================
# APPLICATION FLOW
# ============================================================

APPLY_PROMPT = """📄 To apply for the club, please send your application documents.

📋 Requirements:
• Files must be under 30MB
• You can send multiple files
• Supported formats: PDF, DOC, DOCX, images

Send your first document:"""

APPLICATION_DRAFT_ADDED = """📎 File added: {file_name}

You have {file_count} file(s) in your application.
Send more files or press "{submit}"."""

NEED_FILE_MESSAGE = "📎 Please send at least one file for your application."

FILE_TOO_LARGE = "❌ File is too large! Please send files under 30MB."

APPLICATION_RECEIVED = """✅ Your application has been received and is under review.

You will be notified once the admin reviews your application."""

ALREADY_APPLIED = "⏳ You have already submitted an application. Please wait for admin review."

APPROVED_USER = "🎉 Congratulations! Your application has been approved."

REJECTED_USER = """❌ Sorry, your application has been rejected.

You can submit a new application at any time with "{apply}"."""

# ============================================================
# ADMIN GROUP
# ============================================================

ADMIN_APPLICATION_HEADER = "📋 NEW APPLICATION"

ADMIN_APPROVED_ACK = "Approved ✅"
ADMIN_REJECTED_ACK = "Rejected ❌"
APPLICATION_NOT_FOUND_ALERT = "Application not found."
USER_NOT_FOUND_ALERT = "User not found."
ADMIN_ERROR_ALERT = "Something went wrong."

NO_USERNAME = "(no username)"

# ============================================================
# ERRORS
# ============================================================

ERROR_MESSAGE = "❌ An error occurred. Please try again later."

ID_COMMAND_ERROR = "❌ Could not run /id."
