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
Interfaces of the collaborators used by the scheduling service.
"""

from zope.interface.interface import Interface, Attribute

__all__ = [
    "IDirectoryService",
    "IPrincipalRecord",
    "ICalendarTree",
    "ICalendarNode",
    "IPrivilegeChecker",
    "IScheduleBroker",
    "IFreeBusyGenerator",
    "IDeliveryService",
    "ISchedulingHooks",
]


#
# Directory
#

class IPrincipalRecord(Interface):
    """
    A directory record for a calendar user.
    """

    uid = Attribute("The unique identifier of the principal.")
    principalURL = Attribute("The URL of the principal resource.")
    emailAddresses = Attribute("The e-mail addresses of the principal.")
    calendarUserAddresses = Attribute("The calendar user addresses of the principal.")
    calendarHomePath = Attribute("Path of the calendar home collection, or C{None}.")
    inboxPath = Attribute("Path of the schedule inbox, or C{None}.")
    outboxPath = Attribute("Path of the schedule outbox, or C{None}.")
    defaultCalendarPath = Attribute("Path of the default calendar for new scheduling objects, or C{None}.")



class IDirectoryService(Interface):
    """
    Principal lookups.
    """

    def recordsWithAttribute(attribute, value): #@NoSelf
        """
        Find the principals whose C{attribute} matches C{value}.

        @param attribute: the attribute name, e.g. C{"emailAddresses"}.
        @type attribute: L{str}
        @return: a L{list} (or L{Deferred} firing with a L{list}) of
            L{IPrincipalRecord}.
        """


    def recordWithUID(uid): #@NoSelf
        """
        @return: the L{IPrincipalRecord} (or L{Deferred} firing with it)
            with the given C{uid}, or C{None}.
        """



#
# Storage
#

class ICalendarNode(Interface):

    path = Attribute("The path of the node in the tree.")
    name = Attribute("The last segment of the path.")
    owner = Attribute("The UID of the owning principal, or C{None}.")

    def isCalendar(): #@NoSelf
        """
        @return: C{True} if this node is a calendar collection.
        """


    def isCalendarObject(): #@NoSelf
        """
        @return: C{True} if this node is a calendar object resource.
        """



class ICalendarTree(Interface):
    """
    Storage of calendar homes, collections and calendar object resources.
    Every method may return a value or a L{Deferred} firing with it.
    """

    def getNode(path): #@NoSelf
        """
        @return: the L{ICalendarNode} at C{path}, or C{None}.
        """


    def readEntry(path): #@NoSelf
        """
        @return: the iCalendar text stored at C{path}.
        """


    def createEntry(parentPath, name, content): #@NoSelf
        """
        Create a new calendar object resource C{name} in the collection at
        C{parentPath}.
        """


    def overwrite(path, content): #@NoSelf
        """
        Replace the iCalendar text stored at C{path}.
        """


    def listChildren(path): #@NoSelf
        """
        @return: a L{list} of the L{ICalendarNode} children of C{path}.
        """


    def findEntryByUID(homePath, uid): #@NoSelf
        """
        Search every calendar in a calendar home for a resource with the
        given iCalendar UID.

        @return: the path of the resource, or C{None}.
        """


    def queryByTimeRange(path, start, end): #@NoSelf
        """
        @return: the L{list} of paths of resources in the calendar at
            C{path} with a VEVENT instance overlapping C{start} - C{end}.
        """



#
# Access control
#

class IPrivilegeChecker(Interface):

    def checkPrivilege(path, privilege, scope): #@NoSelf
        """
        @param privilege: the privilege qname, e.g.
            C{"{urn:ietf:params:xml:ns:caldav}schedule-deliver-invite"}.
        @param scope: C{"resource"} or C{"parent"}.
        @return: C{True} if the privilege is granted.
        """



#
# iTIP
#

class IScheduleBroker(Interface):
    """
    Generates and consumes iTIP messages.
    """

    def parseEvent(calendar, userAddresses, oldCalendar=None): #@NoSelf
        """
        Compare two versions of a scheduling object resource.

        @param calendar: the new version, or C{None} if it is being removed.
        @param userAddresses: the calendar user addresses of the user making
            the change.
        @param oldCalendar: the previous version, or C{None} if it is new.
        @return: a L{list} of iTIP messages.
        """


    def processMessage(message, existing=None): #@NoSelf
        """
        Apply an iTIP message to the recipient's copy of the event.

        @param existing: the recipient's current copy, or C{None}.
        @return: the new L{Component}, or C{None} if the message could not
            be processed.
        """



class IFreeBusyGenerator(Interface):

    def generate(calendars, timerange): #@NoSelf
        """
        Aggregate the busy time of a set of calendar objects.

        @param calendars: iCalendar texts or L{Component}s.
        @param timerange: the L{Period} to report on.
        @return: a VCALENDAR L{Component} with a single VFREEBUSY.
        """



class IDeliveryService(Interface):

    def deliver(message): #@NoSelf
        """
        Deliver an iTIP message.

        @return: the iTIP request status, or C{None} if this service does
            not handle the recipient.
        """



#
# Host
#

class ISchedulingHooks(Interface):
    """
    Events the hosting server reports to the scheduling service.
    """

    def onBeforeCreate(path, data, parentPath, owner): #@NoSelf
        """
        A calendar object resource is about to be created.

        @return: a L{Deferred} firing with C{(data, modified)}.
        """


    def onBeforeUpdate(path, data, owner): #@NoSelf
        """
        A calendar object resource is about to be rewritten.

        @return: a L{Deferred} firing with C{(data, modified)}.
        """


    def onBeforeDelete(path, owner): #@NoSelf
        """
        A calendar object resource is about to be removed.
        """


    def onPropertyQuery(record, names): #@NoSelf
        """
        Supply scheduling properties of a principal resource.

        @return: a L{Deferred} firing with a L{dict} mapping property
            names to values.
        """
