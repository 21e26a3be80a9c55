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
Directory records for calendar users and an in-memory directory service.
"""

__all__ = [
    "PrincipalRecord",
    "InMemoryDirectoryService",
]

from twisted.logger import Logger
from zope.interface import implementer

from txschedule.icalendarstore import IDirectoryService, IPrincipalRecord
from txschedule.scheduling.utils import normalizeCUAddr

log = Logger()


@implementer(IPrincipalRecord)
class PrincipalRecord(object):

    def __init__(
        self, uid, emailAddresses=(), calendarUserAddresses=None,
        principalURL=None, calendarHomePath=None, inboxPath=None,
        outboxPath=None, defaultCalendarPath=None,
    ):
        self.uid = uid
        self.emailAddresses = tuple(emailAddresses)
        if calendarUserAddresses is None:
            calendarUserAddresses = ["mailto:%s" % (email,) for email in self.emailAddresses]
        self.calendarUserAddresses = tuple(calendarUserAddresses)
        self.principalURL = principalURL if principalURL is not None else "/principals/__uids__/%s/" % (uid,)
        self.calendarHomePath = calendarHomePath
        self.inboxPath = inboxPath
        self.outboxPath = outboxPath
        self.defaultCalendarPath = defaultCalendarPath


    def __repr__(self):
        return "<%s %s %s>" % (self.__class__.__name__, self.uid, self.emailAddresses,)



@implementer(IDirectoryService)
class InMemoryDirectoryService(object):
    """
    A directory of L{PrincipalRecord}s held in memory.
    """

    def __init__(self, records=()):
        self._records = []
        for record in records:
            self.addRecord(record)


    def addRecord(self, record):
        self._records.append(record)


    def recordWithUID(self, uid):
        for record in self._records:
            if record.uid == uid:
                return record
        return None


    def recordsWithAttribute(self, attribute, value):
        if attribute == "emailAddresses":
            value = value.lower()
            match = lambda values: value in [v.lower() for v in values]
        elif attribute == "calendarUserAddresses":
            value = normalizeCUAddr(value)
            match = lambda values: value in [normalizeCUAddr(v) for v in values]
        else:
            match = lambda v: v == value

        results = [record for record in self._records if match(getattr(record, attribute, None))]
        log.debug(
            "Directory lookup {attr}={value}: {count} records",
            attr=attribute, value=value, count=len(results),
        )
        return results
