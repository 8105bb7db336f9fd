# -*- coding: utf-8 -*-
"""English (en) strings. All HTML placeholders are escaped by the caller."""

LANG = {
    "common.user_fallback": "User {user_id}",
    "common.mention": '<a href="tg://user?id={user_id}">{user_name}</a>',

    # Bot command menu
    "commands.start": "Check your verification status",
    "commands.getchatid": "Show this chat's ID",

    # Membership
    "membership.verify_prompt": (
        "Welcome {mention}! You joined via {kol_name}'s link.\n\n"
        "Please click the button below to verify you're human."
    ),
    "verify.button": "✅ Verify Me!",

    # Verification callback
    "verify.invalid_action": "Error: Invalid action.",
    "verify.success": "Verification successful!",
    "verify.success_message": "✅ {mention} is now verified!",
    "verify.already_verified": "You are already verified.",
    "verify.already_verified_message": "✅ {mention} is already verified.",
    "verify.not_found": "Error: Referral record not found.",
    "verify.not_found_message": "Sorry, there was an issue finding your referral record.",
    "verify.check_failed": "Error checking status.",
    "verify.db_error": "Database error during verification.",

    # /start
    "start.dm_prompt": (
        "Thanks for joining via referral, {user_name}! "
        "Please click the button below to verify you're human."
    ),
    "start.already_verified": "Hi {user_name}! Welcome back. You are already verified.",
    "start.welcome": "Hi {user_name}! Welcome to the KOL Referral Bot.",
    "start.status_error": "Sorry, there was an error checking your status.",

    # /getchatid
    "chat.info": 'Chat: "{title}"\nType: <code>{chat_type}</code>\nID: <code>{chat_id}</code>',
    "chat.title_fallback": "this chat",

    # Admin
    "admin.access_denied": "Sorry, you don't have permission.",
    "admin.private_only": "Please use this command in a direct message.",
    "admin.createlink_usage": "Usage: /createlink &lt;KOL_Name&gt;",
    "admin.link_created": '✅ Invite link created for KOL "{kol_name}":\n<code>{link}</code>',
    "admin.link_untracked": (
        '❌ Error saving link to database for "{kol_name}". '
        "Link was created but not tracked. Please report this.\n<code>{link}</code>"
    ),
    "admin.link_create_failed": (
        '❌ Error creating invite link for "{kol_name}".\nReason: {reason}\n\n'
        "Check bot permissions in target group ({group_id}) and group ID correctness."
    ),
    "admin.listkols_empty": "No KOL links are currently being tracked.",
    "admin.listkols_error": "Error fetching KOL links from database.",
    "admin.listkols_title": "📊 <b>Tracked KOL Links ({count}):</b>",
    "admin.listkols_kol": "👤 <b>{kol_name}:</b>",
    "admin.listkols_link": "   🔗 <code>{link}</code>",
    "admin.list_truncated": "... (list truncated)",
    "admin.refcount_error": "Error fetching referral count from database.",
    "admin.refcount_unknown_kol": '❓ No referrals found associated with KOL "<b>{kol_name}</b>".',
    "admin.refcount_kol": "📊 Verified referral count for KOL <b>{kol_name}</b>: {count}",
    "admin.refcount_total": "📈 Total verified referrals across all KOLs: {count}",

    # Errors
    "errors.generic_alert": "⚠️ An error occurred. Please try again later.",
}
