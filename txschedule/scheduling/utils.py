##
# Copyright (c) 2005-2017 Apple Inc. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
##

from hashlib import md5
import uuid

from twisted.internet.defer import inlineCallbacks, maybeDeferred

from txschedule import caldavxml
from txschedule.config import config

__all__ = [
    "normalizeCUAddr",
    "emailFromCalendarUserAddress",
    "resourceNameForUID",
    "joinURL",
    "scheduleURLsForRecord",
]


def normalizeCUAddr(addr):
    """
    Normalize a cuaddr string by lower()ing it if it's a mailto:, or
    removing trailing slash if it's a URL.
    @param addr: a cuaddr string to normalize
    @return: normalized string
    """
    lower = addr.lower()
    if lower.startswith("mailto:"):
        addr = lower
    if (
        addr.startswith("/") or
        addr.startswith("http:") or
        addr.startswith("https:")
    ):
        return addr.rstrip("/")
    else:
        return addr



def emailFromCalendarUserAddress(address):
    """
    Strip the mailto: scheme from a calendar user address.

    @param address: calendar user address to operate on
    @type address: L{str}

    @return: the bare address
    @rtype: L{str}
    """
    if address.lower().startswith("mailto:"):
        return address[7:]
    return address



def resourceNameForUID(uid):
    """
    Generate a fresh resource name for a scheduling object with the given
    iCalendar UID.
    """
    return "%s-%s.ics" % (md5(uid.encode("utf-8")).hexdigest(), str(uuid.uuid4())[:8],)



def joinURL(*segments):
    path = "/".join([segment.strip("/") for segment in segments if segment.strip("/")])
    return "/%s/" % (path,)



@inlineCallbacks
def scheduleURLsForRecord(record, tree):
    """
    Determine the scheduling collections of a principal.

    Paths provisioned on the record are used as they are.  Otherwise the
    inbox and outbox are the configured children of the calendar home, and
    the default calendar is the first calendar collection in the home.

    @param record: the principal's L{IPrincipalRecord}.
    @param tree: the L{ICalendarTree} holding the calendar home.

    @return: a L{Deferred} firing with a L{dict} mapping
        L{caldavxml.ScheduleInboxURL}, L{caldavxml.ScheduleOutboxURL} and
        L{caldavxml.ScheduleDefaultCalendarURL} to a path, or to C{None} when
        it cannot be determined.
    """
    urls = {
        caldavxml.ScheduleInboxURL: record.inboxPath,
        caldavxml.ScheduleOutboxURL: record.outboxPath,
        caldavxml.ScheduleDefaultCalendarURL: record.defaultCalendarPath,
    }

    home = record.calendarHomePath
    if home:
        if not urls[caldavxml.ScheduleInboxURL]:
            urls[caldavxml.ScheduleInboxURL] = joinURL(home, config.Scheduling.CalDAV.InboxName)
        if not urls[caldavxml.ScheduleOutboxURL]:
            urls[caldavxml.ScheduleOutboxURL] = joinURL(home, config.Scheduling.CalDAV.OutboxName)
        if not urls[caldavxml.ScheduleDefaultCalendarURL]:
            children = yield maybeDeferred(tree.listChildren, home)
            calendars = [child for child in children if child.isCalendar()]
            if calendars:
                urls[caldavxml.ScheduleDefaultCalendarURL] = joinURL(calendars[0].path)

    return urls
