"""
Localized toast messages shown to portal users.

Arabic is the portal's primary language; English is available for
deployments that set ``LOCALE=en``.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "ar"

# key -> (title, description)
MESSAGES: dict[str, dict[str, tuple[str, str]]] = {
    "ar": {
        "generic": ("خطأ", "حدث خطأ غير متوقع"),
        "invalid_input": ("خطأ", "البيانات المدخلة غير صالحة"),
        "unauthorized": ("خطأ", "يجب تسجيل الدخول أولاً"),
        "forbidden": ("خطأ", "ليس لديك صلاحية لتنفيذ هذا الإجراء"),
        "not_found": ("خطأ", "العنصر المطلوب غير موجود"),
        "conflict": ("خطأ", "لا يمكن تنفيذ الطلب في الوقت الحالي"),
        "load_failed": ("خطأ", "حدث خطأ أثناء تحميل الملفات"),
        "file_empty": ("خطأ", "الملف فارغ"),
        "file_too_large": ("خطأ", "حجم الملف كبير جداً"),
        "invalid_subject": ("خطأ", "المادة غير معروفة"),
        "invalid_semester": ("خطأ", "الفصل الدراسي غير معروف"),
        "invalid_file_link": ("خطأ", "رابط الملف غير صالح"),
        "upload_failed": ("خطأ", "فشل في رفع الملف"),
        "file_uploaded": ("نجح الرفع", "تم رفع الملف بنجاح"),
        "delete_failed": ("خطأ", "فشل في حذف الملف"),
        "file_deleted": ("تم الحذف", "تم حذف الملف بنجاح"),
        "store_write_failed": ("خطأ", "تعذر حفظ البيانات"),
        "week_not_found": ("خطأ", "أسبوع الامتحانات غير موجود"),
        "quiz_not_found": ("خطأ", "الاختبار غير موجود"),
        "answers_mismatch": ("خطأ", "عدد الإجابات لا يطابق عدد الأسئلة"),
        "search_failed": ("خطأ في البحث", "حدث خطأ أثناء البحث عن المستخدمين"),
        "request_sent": ("تم إرسال الطلب", "تم إرسال طلب صداقة إلى {email}"),
        "send_failed": ("خطأ في الإرسال", "حدث خطأ أثناء إرسال طلب الصداقة"),
        "self_request": ("خطأ في الإرسال", "لا يمكنك إرسال طلب صداقة لنفسك"),
        "already_friends": ("خطأ في الإرسال", "أنتما صديقان بالفعل"),
        "request_pending": ("خطأ في الإرسال", "يوجد طلب صداقة معلق بالفعل"),
        "user_not_found": ("خطأ", "المستخدم غير موجود"),
        "request_not_found": ("خطأ", "طلب الصداقة غير موجود"),
        "request_accepted": ("تم قبول الطلب", "أصبحت صديقاً مع {name}"),
        "accept_failed": ("خطأ في القبول", "حدث خطأ أثناء قبول طلب الصداقة"),
        "request_declined": ("تم رفض الطلب", "تم رفض طلب الصداقة"),
        "decline_failed": ("خطأ في الرفض", "حدث خطأ أثناء رفض طلب الصداقة"),
        "request_not_pending": ("خطأ", "تمت معالجة طلب الصداقة مسبقاً"),
        "friend_removed": ("تم الحذف", "تمت إزالة الصديق"),
        "not_friends": ("خطأ", "هذا المستخدم ليس من أصدقائك"),
        "schedule_missing": ("لا يوجد جدول", "صديقك لا يملك جدول مذاكرة حالياً"),
        "schedule_copied": ("تم نسخ الجدول", "تم نسخ جدول مذاكرة {name}"),
        "copy_failed": ("خطأ في النسخ", "حدث خطأ أثناء نسخ جدول المذاكرة"),
        "schedule_saved": ("تم الحفظ", "تم حفظ جدول المذاكرة"),
    },
    "en": {
        "generic": ("Error", "Something went wrong"),
        "invalid_input": ("Error", "The submitted data is not valid"),
        "unauthorized": ("Error", "Please sign in first"),
        "forbidden": ("Error", "You are not allowed to do that"),
        "not_found": ("Error", "The requested item does not exist"),
        "conflict": ("Error", "The request cannot be completed right now"),
        "load_failed": ("Error", "Could not load files"),
        "file_empty": ("Error", "The file is empty"),
        "file_too_large": ("Error", "The file is too large"),
        "invalid_subject": ("Error", "Unknown subject"),
        "invalid_semester": ("Error", "Unknown semester"),
        "invalid_file_link": ("Error", "The file link is not valid"),
        "upload_failed": ("Error", "Failed to upload the file"),
        "file_uploaded": ("Uploaded", "The file was uploaded"),
        "delete_failed": ("Error", "Failed to delete the file"),
        "file_deleted": ("Deleted", "The file was deleted"),
        "store_write_failed": ("Error", "Could not save data"),
        "week_not_found": ("Error", "Exam week not found"),
        "quiz_not_found": ("Error", "Quiz not found"),
        "answers_mismatch": ("Error", "Answer count does not match question count"),
        "search_failed": ("Search error", "Could not search for users"),
        "request_sent": ("Request sent", "Friend request sent to {email}"),
        "send_failed": ("Send error", "Could not send the friend request"),
        "self_request": ("Send error", "You cannot befriend yourself"),
        "already_friends": ("Send error", "You are already friends"),
        "request_pending": ("Send error", "A friend request is already pending"),
        "user_not_found": ("Error", "User not found"),
        "request_not_found": ("Error", "Friend request not found"),
        "request_accepted": ("Request accepted", "You are now friends with {name}"),
        "accept_failed": ("Accept error", "Could not accept the friend request"),
        "request_declined": ("Request declined", "The friend request was declined"),
        "decline_failed": ("Decline error", "Could not decline the friend request"),
        "request_not_pending": ("Error", "The friend request was already handled"),
        "friend_removed": ("Removed", "Friend removed"),
        "not_friends": ("Error", "This user is not your friend"),
        "schedule_missing": ("No schedule", "Your friend has no study schedule yet"),
        "schedule_copied": ("Schedule copied", "Copied {name}'s study schedule"),
        "copy_failed": ("Copy error", "Could not copy the study schedule"),
        "schedule_saved": ("Saved", "Study schedule saved"),
    },
}


def render(key: str, locale: str = DEFAULT_LOCALE, **params) -> tuple[str, str]:
    """Return the (title, description) pair for ``key`` in ``locale``."""
    catalog = MESSAGES.get(locale) or MESSAGES[DEFAULT_LOCALE]
    entry = catalog.get(key)
    if entry is None:
        logger.warning("Missing %s message for key %s", locale, key)
        entry = catalog["generic"]
    title, description = entry
    try:
        description = description.format(**params)
    except KeyError:
        logger.warning("Missing parameters for message %s: %s", key, params)
    return title, description


def toast(
    key: str, locale: str = DEFAULT_LOCALE, *, variant: str = "default", **params
) -> dict:
    title, description = render(key, locale, **params)
    return {"title": title, "description": description, "variant": variant}
