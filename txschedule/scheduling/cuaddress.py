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

from twisted.internet.defer import inlineCallbacks, maybeDeferred
from twisted.logger import Logger

from txschedule.scheduling.utils import emailFromCalendarUserAddress

__all__ = [
    "LocalCalendarUser",
    "InvalidCalendarUser",
    "calendarUserFromCalendarUserAddress",
]

log = Logger()


class CalendarUser(object):

    def __init__(self, cuaddr):
        self.cuaddr = cuaddr


    def hosted(self):
        """
        Is this user hosted on this service
        """
        return False



class LocalCalendarUser(CalendarUser):

    def __init__(self, cuaddr, record):
        self.cuaddr = cuaddr
        self.record = record


    def __str__(self):
        return "Local calendar user: %s" % (self.cuaddr,)


    def hosted(self):
        return True



class InvalidCalendarUser(CalendarUser):

    def __str__(self):
        return "Invalid calendar user: %s" % (self.cuaddr,)



@inlineCallbacks
def calendarUserFromCalendarUserAddress(cuaddr, directory):
    """
    Map a calendar user address to a L{LocalCalendarUser} when the directory
    has a principal with that e-mail address (or, failing that, that
    calendar user address), else to an L{InvalidCalendarUser}.

    @param cuaddr: the calendar user address
    @type cuaddr: L{str}
    @param directory: the L{IDirectoryService} to search
    """
    records = yield maybeDeferred(
        directory.recordsWithAttribute, "emailAddresses", emailFromCalendarUserAddress(cuaddr),
    )
    if not records:
        records = yield maybeDeferred(
            directory.recordsWithAttribute, "calendarUserAddresses", cuaddr,
        )

    if not records:
        log.debug("No principal for calendar user address {cuaddr}", cuaddr=cuaddr)
        return InvalidCalendarUser(cuaddr)

    if len(records) > 1:
        log.warn(
            "Multiple principals for calendar user address {cuaddr}: {records}",
            cuaddr=cuaddr, records=records,
        )
    return LocalCalendarUser(cuaddr, records[0])
