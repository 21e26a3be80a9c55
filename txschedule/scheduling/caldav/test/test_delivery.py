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

from twisted.internet.defer import inlineCallbacks

from txschedule import caldavxml
from txschedule.config import config
from txschedule.directory import PrincipalRecord
from txschedule.ical import Component
from txschedule.scheduling.itip import iTIPRequestStatus
from txschedule.test.util import SchedulingTestCase, icalendar

ORGANIZER = "mailto:user01@example.com"
USER02 = "mailto:user02@example.com"

EVENT = icalendar("""BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//CALENDARSERVER.ORG//NONSGML Version 1//EN
BEGIN:VEVENT
UID:12345-67890
DTSTART:20170101T100000Z
DTEND:20170101T110000Z
DTSTAMP:20161201T000000Z
SEQUENCE:0
SUMMARY:Meeting
ORGANIZER:mailto:user01@example.com
ATTENDEE;PARTSTAT=ACCEPTED:mailto:user01@example.com
ATTENDEE;PARTSTAT=NEEDS-ACTION:mailto:user02@example.com
ATTENDEE;PARTSTAT=NEEDS-ACTION:mailto:user03@example.com
END:VEVENT
END:VCALENDAR
""")


class ScheduleViaCalDAVTests(SchedulingTestCase):
    """
    Local delivery of iTIP messages.
    """

    def setUp(self):
        super(ScheduleViaCalDAVTests, self).setUp()
        self.delivery = self.scheduling.dispatcher.services[0]
        self.broker = self.scheduling.broker
        self.calendar = Component.fromString(EVENT)


    def requestTo(self, recipient, calendar=None):
        messages = self.broker.parseEvent(calendar or self.calendar, [ORGANIZER])
        return [message for message in messages if message.recipient == recipient][0]


    def replyFrom(self, attendee, partstat="ACCEPTED"):
        changed = Component.fromString(EVENT.replace(
            "ATTENDEE;PARTSTAT=NEEDS-ACTION:%s" % (attendee,),
            "ATTENDEE;PARTSTAT=%s:%s" % (partstat, attendee,),
        ))
        return self.broker.parseEvent(changed, [attendee], self.calendar)[0]


    @inlineCallbacks
    def test_newRequest(self):
        user02 = self.provisionUser("user02")

        status = yield self.delivery.deliver(self.requestTo(USER02))
        self.assertEqual(status, iTIPRequestStatus.MESSAGE_DELIVERED)

        inbox = self.inboxItems(user02)
        self.assertEqual(len(inbox), 1)
        self.assertEqual(inbox[0][1].propertyValue("METHOD"), "REQUEST")

        items = self.calendarItems(user02)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0][1].resourceUID(), "12345-67890")
        self.assertFalse(items[0][1].hasProperty("METHOD"))
        self.assertTrue(items[0][0].endswith(".ics"))

        self.assertEqual(
            self.privileges.checks,
            [(user02.inboxPath, caldavxml.ScheduleDeliverInvite, "parent",)],
        )


    @inlineCallbacks
    def test_unknownRecipient(self):
        self.tree.calls = []
        status = yield self.delivery.deliver(self.requestTo(USER02))
        self.assertEqual(iTIPRequestStatus.code(status), "3.7")
        self.assertEqual(self.tree.calls, [])
        self.assertEqual(self.privileges.checks, [])


    @inlineCallbacks
    def test_missingDefaultCalendar(self):
        home = "/calendars/__uids__/user02"
        self.tree.provisionHome(home, "user02", calendars=())
        self.directory.addRecord(PrincipalRecord(
            "user02",
            emailAddresses=("user02@example.com",),
            calendarHomePath=home,
            inboxPath=home + "/inbox",
        ))

        status = yield self.delivery.deliver(self.requestTo(USER02))
        self.assertEqual(iTIPRequestStatus.code(status), "5.2")
        self.assertIn("schedule-default-calendar-URL", status)
        self.assertEqual(self.tree.calendarObjects(home + "/inbox"), [])


    @inlineCallbacks
    def test_derivedPaths(self):
        home = "/calendars/__uids__/user02"
        self.tree.provisionHome(home, "user02", calendars=("work",))
        record = PrincipalRecord("user02", emailAddresses=("user02@example.com",), calendarHomePath=home)
        self.directory.addRecord(record)

        properties = yield self.scheduling.onPropertyQuery(record, caldavxml.scheduleProperties)
        status = yield self.delivery.deliver(self.requestTo(USER02))
        self.assertEqual(status, iTIPRequestStatus.MESSAGE_DELIVERED)

        self.assertEqual(
            self.privileges.checks,
            [(properties[caldavxml.ScheduleInboxURL], caldavxml.ScheduleDeliverInvite, "parent",)],
        )
        self.assertEqual(len(self.tree.calendarObjects(properties[caldavxml.ScheduleInboxURL])), 1)
        items = self.tree.calendarObjects(properties[caldavxml.ScheduleDefaultCalendarURL])
        self.assertEqual(len(items), 1)
        self.assertTrue(items[0][0].startswith(home + "/work/"))


    @inlineCallbacks
    def test_missingCalendarHome(self):
        self.directory.addRecord(PrincipalRecord(
            "user02",
            emailAddresses=("user02@example.com",),
            inboxPath="/calendars/__uids__/user02/inbox",
            defaultCalendarPath="/calendars/__uids__/user02/calendar",
        ))

        status = yield self.delivery.deliver(self.requestTo(USER02))
        self.assertEqual(iTIPRequestStatus.code(status), "5.2")
        self.assertIn("calendar-home-set", status)
        self.assertEqual(self.privileges.checks, [])


    @inlineCallbacks
    def test_privilegeDenied(self):
        user02 = self.provisionUser("user02")
        self.privileges.deny(user02.inboxPath, caldavxml.ScheduleDeliverInvite)
        self.tree.calls = []

        status = yield self.delivery.deliver(self.requestTo(USER02))
        self.assertEqual(iTIPRequestStatus.code(status), "3.8")
        self.assertNotIn("createEntry", self.tree.calls)
        self.assertNotIn("overwrite", self.tree.calls)
        self.assertEqual(self.inboxItems(user02), [])
        self.assertEqual(self.calendarItems(user02), [])


    @inlineCallbacks
    def test_updateExisting(self):
        user02 = self.provisionUser("user02")
        yield self.delivery.deliver(self.requestTo(USER02))

        changed = Component.fromString(EVENT.replace("SUMMARY:Meeting", "SUMMARY:Moved").replace("SEQUENCE:0", "SEQUENCE:1"))
        status = yield self.delivery.deliver(self.requestTo(USER02, changed))
        self.assertEqual(status, iTIPRequestStatus.MESSAGE_DELIVERED)

        items = self.calendarItems(user02)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0][1].mainComponent().propertyValue("SUMMARY"), "Moved")
        self.assertEqual(len(self.inboxItems(user02)), 2)


    @inlineCallbacks
    def test_unprocessedMessage(self):
        user02 = self.provisionUser("user02")
        cancel = self.broker.parseEvent(None, [ORGANIZER], self.calendar)[0]
        self.tree.calls = []

        status = yield self.delivery.deliver(cancel)
        self.assertEqual(iTIPRequestStatus.code(status), "5.0")
        self.assertEqual(len(self.inboxItems(user02)), 1)
        self.assertEqual(self.calendarItems(user02), [])
        self.assertNotIn("overwrite", self.tree.calls)


    @inlineCallbacks
    def test_replyUpdatesOrganizer(self):
        user01 = self.provisionUser("user01")
        path = self.storeEntry(user01, EVENT)

        status = yield self.delivery.deliver(self.replyFrom(USER02))
        self.assertEqual(status, iTIPRequestStatus.MESSAGE_DELIVERED)

        stored = Component.fromString(self.tree.readEntry(path))
        attendee = stored.getAttendeeProperty((USER02,))
        self.assertEqual(attendee.parameterValue("PARTSTAT"), "ACCEPTED")
        self.assertEqual(len(self.calendarItems(user01)), 1)
        self.assertEqual(len(self.inboxItems(user01)), 1)


    @inlineCallbacks
    def test_replyTwice(self):
        user01 = self.provisionUser("user01")
        path = self.storeEntry(user01, EVENT)
        reply = self.replyFrom(USER02)

        yield self.delivery.deliver(reply)
        first = self.tree.readEntry(path)
        yield self.delivery.deliver(reply)
        second = self.tree.readEntry(path)

        self.assertEqual(second, first)
        stored = Component.fromString(second)
        self.assertEqual(len(stored.mainComponent().properties("ATTENDEE")), 3)
        self.assertEqual(len(self.inboxItems(user01)), 2)


    @inlineCallbacks
    def test_addressPatterns(self):
        self.patch(config.Scheduling.CalDAV, "AddressPatterns", ["mailto:.*@example\\.org$"])
        self.provisionUser("user02")
        status = yield self.delivery.deliver(self.requestTo(USER02))
        self.assertEqual(status, None)
