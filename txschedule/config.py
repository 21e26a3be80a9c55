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
Configuration handling for the scheduling service.

Settings live in a tree of L{ConfigDict}s so that code can write
C{config.Scheduling.Options.LimitFreeBusyAttendees} rather than
C{config["Scheduling"]["Options"]["LimitFreeBusyAttendees"]}.  A
L{ConfigProvider} supplies the defaults and reads any configuration file,
and L{Config} layers the loaded values over the defaults, running the
registered post-update hooks each time the tree changes.
"""

__all__ = [
    "Config",
    "ConfigDict",
    "ConfigProvider",
    "ConfigurationError",
    "mergeData",
    "config",
]

import copy
import os


class ConfigurationError(RuntimeError):
    """
    Invalid scheduling configuration.
    """



class ConfigDict(dict):
    """
    Dictionary whose public keys are also attributes.  Nested plain
    dictionaries are converted on assignment; keys beginning with C{_} are
    kept for real instance attributes.
    """

    def __init__(self, mapping=None):
        super(ConfigDict, self).__init__()
        for key, value in (mapping or {}).items():
            self[key] = value


    def __repr__(self):
        return "*" + dict.__repr__(self)


    def __setitem__(self, key, value):
        if key.startswith("_"):
            raise KeyError("Keys may not begin with '_': %s" % (key,))
        if isinstance(value, dict) and not isinstance(value, ConfigDict):
            value = ConfigDict(value)
        dict.__setitem__(self, key, value)


    def __getattr__(self, attr):
        if attr.startswith("_") or attr not in self:
            return dict.__getattribute__(self, attr)
        return self[attr]


    def __setattr__(self, attr, value):
        if attr.startswith("_"):
            dict.__setattr__(self, attr, value)
        else:
            self[attr] = value


    def __delattr__(self, attr):
        if attr.startswith("_") or attr not in self:
            dict.__delattr__(self, attr)
        else:
            del self[attr]



class ConfigProvider(object):
    """
    Source of default values and of the configuration file contents.  The
    base class has no file format and simply returns its defaults.
    """

    def __init__(self, defaults=None):
        self._configFileName = None
        self.setDefaults(defaults or {})


    def getDefaults(self):
        return self._defaults


    def setDefaults(self, defaults):
        self._defaults = ConfigDict(copy.deepcopy(defaults))


    def getConfigFileName(self):
        return self._configFileName


    def setConfigFileName(self, configFileName):
        self._configFileName = os.path.abspath(configFileName) if configFileName else configFileName


    def hasErrors(self):
        """
        Return true if last load operation encountered any errors.
        """
        return False


    def loadConfig(self):
        """
        Load the configuration, return a dictionary of settings.
        """
        return self._defaults



class Config(object):
    """
    The live configuration.  Attribute access reads the merged tree,
    applying any pending update first.
    """

    _dirty = False
    _data = ()

    def __init__(self, provider=None):
        self._provider = provider if provider else ConfigProvider()
        self._updating = False
        self._postUpdateHooks = []
        self.reset()


    def __setattr__(self, attr, value):
        data = self.__dict__.get("_data", ())
        if attr in data:
            data[attr] = value
        else:
            self.__dict__[attr] = value

        # Private attributes do not trigger an update
        if not attr.startswith("_"):
            self.__dict__["_dirty"] = True


    def __getattr__(self, attr):
        if self._dirty:
            self.update()
        if attr in self._data:
            return self._data[attr]
        raise AttributeError(attr)


    def __str__(self):
        return str(self._data)


    def get(self, path, defaultValue=None):
        """
        Look up a dotted C{path} such as C{"Scheduling.CalDAV.InboxName"},
        returning C{defaultValue} when any part of it is missing.
        """
        value = self._data
        for part in path.split("."):
            if not isinstance(value, dict) or part not in value:
                return defaultValue
            value = value[part]
        return value


    def addPostUpdateHooks(self, hooks):
        """
        Register callables run with the merged data after every update.
        """
        self._postUpdateHooks.extend(hooks)


    def getProvider(self):
        return self._provider


    def setProvider(self, provider):
        self._provider = provider
        self.reset()


    def setDefaults(self, defaults):
        self._provider.setDefaults(defaults)
        self.reset()


    def update(self, items=None):
        if self._updating:
            return
        self._updating = True
        try:
            mergeData(self._data, items if isinstance(items, ConfigDict) else ConfigDict(items))
            for hook in self._postUpdateHooks:
                hook(self._data)
        finally:
            self._updating = False
        self._dirty = False


    def load(self, configFile):
        self._provider.setConfigFileName(configFile)
        configDict = self._provider.loadConfig()
        if self._provider.hasErrors():
            raise ConfigurationError(
                "Invalid configuration in %s" % (self._provider.getConfigFileName(),)
            )
        self.update(configDict)


    def reset(self):
        self._data = ConfigDict(copy.deepcopy(self._provider.getDefaults()))
        self._dirty = True



def mergeData(oldData, newData):
    """
    Recursively copy the keys and values of C{newData} into C{oldData}.

    @param oldData: the object to modify
    @type oldData: L{ConfigDict}
    @param newData: the object to copy data from
    @type newData: L{ConfigDict}
    """
    for key, value in newData.items():
        if not isinstance(value, dict):
            oldData[key] = value
            continue
        if key not in oldData:
            oldData[key] = {}
        elif not isinstance(oldData[key], ConfigDict):
            raise ConfigurationError("%r cannot be replaced by a dictionary" % (key,))
        mergeData(oldData[key], value)



config = Config()
