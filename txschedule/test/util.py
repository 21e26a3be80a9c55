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

"""
Shared fixtures for the scheduling tests.
"""

from twisted.trial import unittest

from txschedule.directory import InMemoryDirectoryService, PrincipalRecord
from txschedule.memorystore import MemoryCalendarTree, MemoryPrivilegeChecker
from txschedule.schedule import CalDAVScheduling


def icalendar(data):
    """
    Fixture data is written with plain line endings.
    """
    return data.replace("\n", "\r\n")



class RecordingCalendarTree(MemoryCalendarTree):
    """
    A L{MemoryCalendarTree} that records the name of every L{ICalendarTree}
    call made on it.
    """

    def __init__(self):
        super(RecordingCalendarTree, self).__init__()
        self.calls = []


    def getNode(self, path):
        self.calls.append("getNode")
        return super(RecordingCalendarTree, self).getNode(path)


    def readEntry(self, path):
        self.calls.append("readEntry")
        return super(RecordingCalendarTree, self).readEntry(path)


    def createEntry(self, parentPath, name, content):
        self.calls.append("createEntry")
        return super(RecordingCalendarTree, self).createEntry(parentPath, name, content)


    def overwrite(self, path, content):
        self.calls.append("overwrite")
        return super(RecordingCalendarTree, self).overwrite(path, content)


    def listChildren(self, path):
        self.calls.append("listChildren")
        return super(RecordingCalendarTree, self).listChildren(path)


    def findEntryByUID(self, homePath, uid):
        self.calls.append("findEntryByUID")
        return super(RecordingCalendarTree, self).findEntryByUID(homePath, uid)


    def queryByTimeRange(self, path, start, end):
        self.calls.append("queryByTimeRange")
        return super(RecordingCalendarTree, self).queryByTimeRange(path, start, end)



class SchedulingTestCase(unittest.TestCase):
    """
    A test case with an in-memory directory, calendar tree and privilege
    checker wired into a L{CalDAVScheduling}.
    """

    def setUp(self):
        self.directory = InMemoryDirectoryService()
        self.tree = RecordingCalendarTree()
        self.privileges = MemoryPrivilegeChecker()
        self.scheduling = CalDAVScheduling(self.directory, self.tree, self.privileges)


    def provisionUser(self, uid, email=None):
        """
        Add a principal with a calendar home, inbox, outbox and one calendar.
        """
        if email is None:
            email = "%s@example.com" % (uid,)
        home = "/calendars/__uids__/%s" % (uid,)
        record = PrincipalRecord(
            uid,
            emailAddresses=(email,),
            calendarHomePath=home,
            inboxPath=home + "/inbox",
            outboxPath=home + "/outbox",
            defaultCalendarPath=home + "/calendar",
        )
        self.tree.provisionHome(home, uid)
        self.directory.addRecord(record)
        return record


    def storeEntry(self, record, data, name="event.ics"):
        return self.tree.createEntry(record.defaultCalendarPath, name, data)


    def inboxItems(self, record):
        return self.tree.calendarObjects(record.inboxPath)


    def calendarItems(self, record):
        return self.tree.calendarObjects(record.defaultCalendarPath)
