class ScimCoreWarning(UserWarning):
    pass
